"""Read file tool."""

from __future__ import annotations

import os
from typing import ClassVar

from pydantic import BaseModel, Field

from clawloop.cancel import CancellationToken
from clawloop.tool.base import BaseTool, ToolResult


class ReadFileParams(BaseModel):
    path: str = Field(description="Absolute or relative path to the file to read.")
    offset: int = Field(
        default=0, ge=0, description="Line number to start reading from (0-indexed)."
    )
    limit: int = Field(default=2000, gt=0, description="Maximum number of lines to read.")


class ReadFileTool(BaseTool[ReadFileParams]):
    """Read file contents (or list a directory) relative to a working dir."""

    name: ClassVar[str] = "read_file"
    description: ClassVar[str] = (
        "Read the contents of a text file. Returns numbered lines. "
        "Use offset and limit for large files. A directory path lists its entries."
    )
    param_model: ClassVar[type[BaseModel]] = ReadFileParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def run(self, params: ReadFileParams, cancel: CancellationToken) -> ToolResult:
        path = params.path
        if not os.path.isabs(path):
            path = os.path.join(self._cwd, path)

        if not os.path.exists(path):
            return ToolResult.fail(f"File not found: {path}")

        if os.path.isdir(path):
            try:
                entries = sorted(os.listdir(path))
            except PermissionError:
                return ToolResult.fail(f"Permission denied: {path}")
            formatted = [
                f"{e}/" if os.path.isdir(os.path.join(path, e)) else e for e in entries
            ]
            return ToolResult.ok("\n".join(formatted))

        try:
            with open(path, "r", errors="replace") as f:
                all_lines = f.readlines()
        except PermissionError:
            return ToolResult.fail(f"Permission denied: {path}")

        total = len(all_lines)
        start = min(params.offset, total)
        end = min(start + params.limit, total)

        numbered = [
            f"{i}: {line.rstrip()}"
            for i, line in enumerate(all_lines[start:end], start=start + 1)
        ]
        result = "\n".join(numbered)
        if end < total:
            result += f"\n\n[{total - end} more lines. Use offset={end} to continue.]"
        return ToolResult.ok(result)
