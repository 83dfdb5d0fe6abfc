"""Delegate tool — hand a sub-task to an isolated sub-agent."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from pydantic import BaseModel, Field

from clawloop.agent.types import SubAgentRequest
from clawloop.cancel import CancellationToken
from clawloop.errors import SubAgentCapacityError
from clawloop.tool.base import BaseTool, ToolResult

if TYPE_CHECKING:
    from clawloop.agent.subagent import SubAgentFactory


class DelegateParams(BaseModel):
    task: str = Field(
        description=(
            "Complete, self-contained instructions for the sub-agent. It sees "
            "none of this conversation, so include every detail it needs."
        )
    )
    system_prompt: str | None = Field(
        default=None,
        description="Optional role or persona for the sub-agent.",
    )
    model: str | None = Field(
        default=None,
        description="Optional model override. Omit to use the default model.",
    )


class DelegateTool(BaseTool[DelegateParams]):
    """Dispatch a task to an isolated sub-agent.

    The sub-agent runs in its own session with a fresh history and returns
    only its final answer.
    """

    name: ClassVar[str] = "delegate"
    description: ClassVar[str] = (
        "Delegate a self-contained sub-task to an independent sub-agent. "
        "The sub-agent has the same tools but none of this conversation's "
        "history, and returns its final answer. If all sub-agent slots are "
        "busy the call fails immediately; try again later."
    )
    param_model: ClassVar[type[BaseModel]] = DelegateParams

    def __init__(self, factory: SubAgentFactory) -> None:
        self._factory = factory

    async def run(self, params: DelegateParams, cancel: CancellationToken) -> ToolResult:
        request = SubAgentRequest(
            task=params.task,
            model=params.model,
            system_prompt=params.system_prompt,
        )
        try:
            result = await self._factory.spawn(request, cancel)
        except SubAgentCapacityError as e:
            return ToolResult.fail(f"{e} Try again later.")

        if not result.success:
            return ToolResult.fail(
                f"Sub-agent {result.session_id} failed: {result.error}",
                output=result.content,
            )
        return ToolResult.ok(f"[{result.session_id}]\n{result.content}")
