"""Tool system — base classes, registry, and output truncation."""

from clawloop.tool.base import BaseTool, Tool, ToolResult
from clawloop.tool.registry import ToolRegistry
from clawloop.tool.truncation import truncate_output

__all__ = [
    "BaseTool",
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "truncate_output",
]
