"""
Recent-window boundary for compaction passes.
"""

from typing import Sequence

from .types import WireMessage


def find_recent_window_start(messages: Sequence[WireMessage], recent_window_size: int) -> int:
    """Find the index where the protected recent window starts.

    The window covers the last ``recent_window_size`` user messages and
    everything after them. With fewer user messages than that, the whole
    conversation is protected and 0 is returned.

    Window sizes below 1 are clamped to 1, so the latest user turn is
    always protected.
    """
    window = max(1, recent_window_size)
    user_count = 0
    for idx in range(len(messages) - 1, -1, -1):
        if messages[idx].role == "user":
            user_count += 1
            if user_count >= window:
                return idx
    return 0
