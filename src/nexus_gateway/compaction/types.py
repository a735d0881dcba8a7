"""
Core types for the compaction pipeline.

Wire messages arrive from the frontend as the active branch of a
conversation. Compaction passes rewrite tool-call results in older
messages and report every change they make as a CompactionEntry.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass
class WireToolCall:
    """A tool call attached to an assistant wire message."""

    id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    result: str | None = None
    is_error: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WireToolCall":
        return cls(
            id=data["id"],
            name=data["name"],
            args=data.get("args") or {},
            result=data.get("result"),
            is_error=bool(data.get("isError", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name, "args": self.args}
        if self.result is not None:
            data["result"] = self.result
        if self.is_error:
            data["isError"] = True
        return data


@dataclass
class WireMessage:
    """A message in the frontend wire format."""

    role: Literal["user", "assistant"]
    content: str | None = None
    tool_calls: list[WireToolCall] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WireMessage":
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=[WireToolCall.from_dict(tc) for tc in data.get("toolCalls") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["toolCalls"] = [tc.to_dict() for tc in self.tool_calls]
        return data


@dataclass
class CompactionContext:
    """Per-invocation budget information handed to every pass."""

    token_usage: int
    token_limit: int
    recent_window_size: int = 4

    @property
    def ratio(self) -> float:
        """Fraction of the context window already consumed."""
        if self.token_limit <= 0:
            return 0.0
        return self.token_usage / self.token_limit


@dataclass
class CompactionEntry:
    """A single action taken on one tool result."""

    message_index: int
    tool_call_id: str
    tool_name: str
    action: Literal["truncated"]
    original_size: int
    compacted_size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "messageIndex": self.message_index,
            "toolCallId": self.tool_call_id,
            "toolName": self.tool_name,
            "action": self.action,
            "originalSize": self.original_size,
            "compactedSize": self.compacted_size,
        }


@dataclass
class CompactionReport:
    """What a pass (or the whole pipeline) did."""

    passes_run: list[str] = field(default_factory=list)
    entries: list[CompactionEntry] = field(default_factory=list)
    estimated_tokens_saved: int = 0

    def merge(self, other: "CompactionReport") -> "CompactionReport":
        """Combine two reports, keeping pass and entry order."""
        return CompactionReport(
            passes_run=self.passes_run + other.passes_run,
            entries=self.entries + other.entries,
            estimated_tokens_saved=self.estimated_tokens_saved + other.estimated_tokens_saved,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "passesRun": list(self.passes_run),
            "entries": [entry.to_dict() for entry in self.entries],
            "estimatedTokensSaved": self.estimated_tokens_saved,
        }


@dataclass
class CompactionResult:
    """Messages after compaction plus the report describing the changes."""

    messages: list[WireMessage]
    report: CompactionReport = field(default_factory=CompactionReport)


class CompactionPass(ABC):
    """A named compaction strategy gated by a usage-ratio threshold.

    Implementations must be pure: they return new message objects for
    anything they rewrite and hand back untouched messages as-is. A pass
    that changed nothing reports no entries and does not list itself in
    ``passes_run``.
    """

    name: str
    threshold: float

    @abstractmethod
    def compact(
        self,
        messages: list[WireMessage],
        ctx: CompactionContext,
    ) -> CompactionResult:
        """Compact the messages outside the recent window."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, threshold={self.threshold})"
