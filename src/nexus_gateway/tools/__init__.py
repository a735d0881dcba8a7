"""
Tools module - server-side tools the agent can call.
"""

from .base import Tool, ToolParameter, ToolResult
from .registry import ToolRegistry, get_tool_registry

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
    "get_tool_registry",
]
