"""
Compaction passes, in escalation order.

- tool-response-pruner (0.5): heuristic truncation of old tool results
"""

from .tool_response_pruner import ToolResponsePruner

__all__ = [
    "ToolResponsePruner",
]
