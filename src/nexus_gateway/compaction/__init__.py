"""
Compaction module - keeps conversations within the model's token budget.

Includes:
- CompactionPipeline: threshold-gated passes run in escalation order
- ToolResponsePruner: truncation of old tool results (threshold 0.5)
- truncate_old_tool_results: in-place trimming between tool rounds
- ModelResolver: context window lookup used as the token limit
"""

from .types import (
    CompactionContext,
    CompactionEntry,
    CompactionPass,
    CompactionReport,
    CompactionResult,
    WireMessage,
    WireToolCall,
)
from .window import find_recent_window_start
from .passes import ToolResponsePruner
from .pipeline import (
    CompactionPipeline,
    RoundTruncation,
    create_default_pipeline,
    truncate_old_tool_results,
)
from .models import ModelMeta, ModelResolver, OllamaModelResolver
from .pricing import ModelPricing, calculate_cost, resolve_price

__all__ = [
    "CompactionContext",
    "CompactionEntry",
    "CompactionPass",
    "CompactionReport",
    "CompactionResult",
    "WireMessage",
    "WireToolCall",
    "find_recent_window_start",
    "ToolResponsePruner",
    "CompactionPipeline",
    "RoundTruncation",
    "create_default_pipeline",
    "truncate_old_tool_results",
    "ModelMeta",
    "ModelResolver",
    "OllamaModelResolver",
    "ModelPricing",
    "calculate_cost",
    "resolve_price",
]
