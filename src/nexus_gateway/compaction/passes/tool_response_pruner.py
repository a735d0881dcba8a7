"""
Tool Response Pruner - heuristic truncation of old tool results.

No LLM calls, zero latency cost. This is the first pass to activate
(threshold 0.5) and the cheapest one.

Rules:
1. Messages inside the recent window are never touched
2. Error results longer than 500 chars keep their first 500 chars
3. Other results longer than 1500 chars become a short placeholder
"""

import re
from dataclasses import replace

from ..budget import estimate_tokens_saved
from ..types import (
    CompactionContext,
    CompactionEntry,
    CompactionPass,
    CompactionReport,
    CompactionResult,
    WireMessage,
    WireToolCall,
)
from ..window import find_recent_window_start

TOOL_RESULT_TRUNCATE_THRESHOLD = 1500
ERROR_RESULT_KEEP_CHARS = 500

_ERROR_MARKER_RE = re.compile(r"\n\n\[Error output truncated: \d+ chars total\]\Z")


def error_marker(original_size: int) -> str:
    return f"\n\n[Error output truncated: {original_size} chars total]"


def result_placeholder(original_size: int, tool_name: str) -> str:
    return f"[Tool result truncated: {original_size} chars, tool: {tool_name}]"


class ToolResponsePruner(CompactionPass):
    """Truncate large tool results outside the recent window."""

    name = "tool-response-pruner"
    threshold = 0.5

    def __init__(
        self,
        truncate_threshold: int = TOOL_RESULT_TRUNCATE_THRESHOLD,
        error_keep_chars: int = ERROR_RESULT_KEEP_CHARS,
    ):
        self.truncate_threshold = truncate_threshold
        self.error_keep_chars = error_keep_chars

    def _prune(self, tool_call: WireToolCall) -> str | None:
        """Return the replacement result, or None to leave it alone."""
        result = tool_call.result
        if result is None:
            return None

        original_size = len(result)

        if tool_call.is_error and original_size > self.error_keep_chars:
            # Already cut down by an earlier run
            if _ERROR_MARKER_RE.search(result):
                return None
            truncated = result[: self.error_keep_chars] + error_marker(original_size)
        elif original_size > self.truncate_threshold:
            truncated = result_placeholder(original_size, tool_call.name)
        else:
            return None

        if len(truncated) >= original_size:
            return None
        return truncated

    def compact(
        self,
        messages: list[WireMessage],
        ctx: CompactionContext,
    ) -> CompactionResult:
        recent_start = find_recent_window_start(messages, ctx.recent_window_size)
        entries: list[CompactionEntry] = []
        tokens_saved = 0
        compacted: list[WireMessage] = []

        for idx, msg in enumerate(messages):
            if idx >= recent_start or msg.role != "assistant" or not msg.tool_calls:
                compacted.append(msg)
                continue

            modified = False
            new_tool_calls: list[WireToolCall] = []
            for tc in msg.tool_calls:
                truncated = self._prune(tc)
                if truncated is None:
                    new_tool_calls.append(tc)
                    continue

                original_size = len(tc.result or "")
                tokens_saved += estimate_tokens_saved(original_size, len(truncated))
                entries.append(CompactionEntry(
                    message_index=idx,
                    tool_call_id=tc.id,
                    tool_name=tc.name,
                    action="truncated",
                    original_size=original_size,
                    compacted_size=len(truncated),
                ))
                new_tool_calls.append(replace(tc, result=truncated))
                modified = True

            compacted.append(replace(msg, tool_calls=new_tool_calls) if modified else msg)

        return CompactionResult(
            messages=compacted,
            report=CompactionReport(
                passes_run=[self.name] if entries else [],
                entries=entries,
                estimated_tokens_saved=tokens_saved,
            ),
        )
