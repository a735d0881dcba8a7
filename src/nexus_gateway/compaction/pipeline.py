"""
Threshold-triggered compaction pipeline.

Each registered pass has an activation threshold (0.0-1.0). At runtime the
pipeline checks tokenUsage / tokenLimit and runs every pass whose threshold
has been crossed, in threshold order. Passes compose: the output of pass N
is the input of pass N+1.

Also home to the lightweight inter-round truncation used inside a single
multi-round tool loop.
"""

from typing import Any, NamedTuple

import structlog

from .budget import estimate_tokens_saved
from .types import CompactionContext, CompactionPass, CompactionReport, CompactionResult, WireMessage

logger = structlog.get_logger()

# Results at or under this size are never worth truncating between rounds
ROUND_RESULT_MIN_SIZE = 200


class CompactionPipeline:
    """Ordered registry of compaction passes."""

    def __init__(self, passes: list[CompactionPass] | None = None):
        self._passes: list[CompactionPass] = []
        for pass_ in passes or []:
            self.register(pass_)

    def register(self, pass_: CompactionPass) -> None:
        """Register a pass, keeping the registry in escalation order."""
        self._passes.append(pass_)
        self._passes.sort(key=lambda p: p.threshold)

    @property
    def passes(self) -> list[CompactionPass]:
        return list(self._passes)

    def active_passes(self, ratio: float) -> list[CompactionPass]:
        """Passes whose threshold has been crossed at the given usage ratio."""
        return [p for p in self._passes if p.threshold <= ratio]

    def run(self, messages: list[WireMessage], ctx: CompactionContext) -> CompactionResult:
        """Run every active pass over the messages."""
        ratio = ctx.ratio
        active = self.active_passes(ratio)

        if not active:
            return CompactionResult(messages=messages, report=CompactionReport())

        current = messages
        report = CompactionReport()

        for pass_ in active:
            result = pass_.compact(current, ctx)
            current = result.messages
            report = report.merge(result.report)

        if report.entries:
            logger.info(
                "Compaction pipeline ran",
                ratio=round(ratio, 3),
                passes=report.passes_run,
                entries=len(report.entries),
                tokens_saved=report.estimated_tokens_saved,
            )

        return CompactionResult(messages=current, report=report)


def create_default_pipeline() -> CompactionPipeline:
    """Create a pipeline with the built-in passes registered."""
    from .passes import ToolResponsePruner

    return CompactionPipeline([ToolResponsePruner()])


class RoundTruncation(NamedTuple):
    truncated: int
    tokens_saved: int


def round_placeholder(original_size: int) -> str:
    return f"[Tool result truncated: {original_size} chars]"


def truncate_old_tool_results(
    api_messages: list[dict[str, Any]],
    keep_recent_results: int,
) -> RoundTruncation:
    """Replace old tool_result blocks in a provider prompt buffer.

    During a multi-round tool loop, tool_result blocks pile up in the
    working buffer. Every result beyond the ``keep_recent_results`` newest
    ones that is longer than 200 chars is replaced with a short placeholder.

    The buffer is mutated in place. The caller owns it exclusively for the
    duration of the call; it is rebuilt for every turn and never persisted,
    so only the counts are returned.
    """
    # (message index, block index, size), newest first
    locations: list[tuple[int, int, int]] = []

    for msg_idx in range(len(api_messages) - 1, -1, -1):
        msg = api_messages[msg_idx]
        content = msg.get("content")
        if msg.get("role") != "user" or not isinstance(content, list):
            continue

        for block_idx in range(len(content) - 1, -1, -1):
            block = content[block_idx]
            if isinstance(block, dict) and block.get("type") == "tool_result":
                result = block.get("content")
                size = len(result) if isinstance(result, str) else 0
                locations.append((msg_idx, block_idx, size))

    truncated = 0
    tokens_saved = 0

    for msg_idx, block_idx, size in locations[max(0, keep_recent_results):]:
        if size <= ROUND_RESULT_MIN_SIZE:
            continue

        placeholder = round_placeholder(size)
        api_messages[msg_idx]["content"][block_idx]["content"] = placeholder
        tokens_saved += estimate_tokens_saved(size, len(placeholder))
        truncated += 1

    if truncated:
        logger.debug(
            "Truncated old tool results between rounds",
            truncated=truncated,
            tokens_saved=tokens_saved,
        )

    return RoundTruncation(truncated=truncated, tokens_saved=tokens_saved)
