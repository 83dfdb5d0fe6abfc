"""Think tool — scratchpad for reasoning without acting."""

from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, Field

from clawloop.cancel import CancellationToken
from clawloop.tool.base import BaseTool, ToolResult


class ThinkParams(BaseModel):
    thought: str = Field(
        description=(
            "Your internal reasoning. Use this to plan, break a problem down, "
            "or decide what to delegate before taking action."
        )
    )


class ThinkTool(BaseTool[ThinkParams]):
    """Record reasoning in the conversation with no side effects."""

    name: ClassVar[str] = "think"
    description: ClassVar[str] = (
        "Use this tool to think through a problem and plan your approach. "
        "No side effects, it only records your reasoning in the conversation."
    )
    param_model: ClassVar[type[BaseModel]] = ThinkParams

    async def run(self, params: ThinkParams, cancel: CancellationToken) -> ToolResult:
        return ToolResult.ok("Thought recorded.")
