"""
Agent module - the turn handler.

Includes:
- Agent: compaction, prompt assembly and the tool-calling loop
- ConversationContext: agent-owned per-conversation state
- build_api_messages: wire messages to provider prompt buffer
- build_system_prompt: boundary policy, core prompt, context, tools, datetime
- ConversationUsage: token and cost accounting
"""

from .core import Agent, ConversationContext, TurnInProgressError, TurnResult
from .prompt import build_api_messages
from .system_prompt import build_system_prompt
from .usage import ConversationUsage, TokenUsage

__all__ = [
    "Agent",
    "ConversationContext",
    "TurnInProgressError",
    "TurnResult",
    "build_api_messages",
    "build_system_prompt",
    "ConversationUsage",
    "TokenUsage",
]
