"""
Token usage and cost tracking for a conversation.
"""

import time
from dataclasses import dataclass, field


@dataclass
class TokenUsage:
    """Token counts reported by the provider for the latest model call."""

    input_tokens: int
    output_tokens: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class ConversationUsage:
    """Cumulative usage across every model call in a conversation."""

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost: float = 0.0
    # Latest context fill: input tokens of the most recent call
    context_tokens: int = 0
    context_window: int = 0

    def record(self, input_tokens: int, output_tokens: int, cost: float, context_window: int) -> None:
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_cost += cost
        self.context_tokens = input_tokens
        self.context_window = context_window

    @property
    def context_ratio(self) -> float:
        if self.context_window <= 0:
            return 0.0
        return self.context_tokens / self.context_window
