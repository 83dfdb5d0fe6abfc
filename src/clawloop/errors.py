"""Exception hierarchy for clawloop."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clawloop.agent.types import AgentResult


class ClawloopError(Exception):
    """Base class for all clawloop errors."""


class ProviderError(ClawloopError):
    """The LLM provider failed and the agent loop cannot continue.

    ``result`` carries the partial run (``finish_reason=FAILED``) with every
    tool execution that completed before the failure, when raised by the
    agent loop.
    """

    def __init__(self, message: str, result: AgentResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class SubAgentCapacityError(ClawloopError):
    """No sub-agent slot was free at the moment of the spawn call."""

    def __init__(self, max_concurrent: int) -> None:
        self.max_concurrent = max_concurrent
        super().__init__(
            f"Max concurrent sub-agents ({max_concurrent}) reached. "
            "Wait for existing agents to complete."
        )
