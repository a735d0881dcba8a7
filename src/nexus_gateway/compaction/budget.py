"""
Character-based token estimates.

Token counts here are a 4-characters-per-token heuristic, never an exact
tokenizer count.
"""

import math
from typing import Iterable

from .types import WireMessage

CHARS_PER_TOKEN = 4


def estimate_tokens_saved(original_size: int, compacted_size: int) -> int:
    """Estimate tokens saved by shrinking text from one size to another."""
    return math.ceil((original_size - compacted_size) / CHARS_PER_TOKEN)


def count_wire_chars(messages: Iterable[WireMessage]) -> int:
    """Count characters of message content plus tool results."""
    total = 0
    for msg in messages:
        total += len(msg.content or "")
        total += sum(len(tc.result or "") for tc in msg.tool_calls)
    return total


def estimate_context_tokens(messages: list[WireMessage], last_input_tokens: int = 0) -> int:
    """Estimate the prompt size of the next model call.

    The last input-token count reported by the provider is the best known
    baseline; the incoming messages are added on top as a character estimate.
    """
    return last_input_tokens + math.ceil(count_wire_chars(messages) / CHARS_PER_TOKEN)
