"""Built-in general-purpose tools."""

from clawloop.tool.builtin.delegate import DelegateTool
from clawloop.tool.builtin.read_file import ReadFileTool
from clawloop.tool.builtin.think import ThinkTool

__all__ = [
    "DelegateTool",
    "ReadFileTool",
    "ThinkTool",
]
