"""Request and result types for agent runs."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from clawloop.llm.message import Message, TokenUsage
from clawloop.llm.provider import DEFAULT_MODEL_ALIAS


class FinishReason(enum.Enum):
    """Why did the agent run end?"""

    STOP = "stop"  # Model answered without requesting tools
    MAX_ITERATIONS = "max_iterations"  # Hit the round cap
    FAILED = "failed"  # Provider error


@dataclass(frozen=True)
class AgentRequest:
    """Input to one agent loop run."""

    model: str
    initial_messages: Sequence[Message] = ()

    def __post_init__(self) -> None:
        # Freeze the caller's list so the run cannot be affected by later edits
        object.__setattr__(self, "initial_messages", tuple(self.initial_messages))


@dataclass(frozen=True)
class ToolExecution:
    """Record of one tool call executed during a run."""

    tool_call_id: str
    tool_name: str
    arguments_json: str
    success: bool
    output: str = ""
    error: str | None = None
    duration_ms: float = 0.0


@dataclass
class AgentResult:
    """Outcome of an agent loop run."""

    content: str
    tool_executions: list[ToolExecution] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.STOP
    messages: list[Message] = field(default_factory=list)
    iterations: int = 0
    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class SubAgentRequest:
    """A task to delegate to an isolated sub-agent."""

    task: str
    model: str | None = DEFAULT_MODEL_ALIAS
    system_prompt: str | None = None
    max_iterations: int | None = None  # None: the factory's default

    @property
    def resolved_model(self) -> str:
        return self.model or DEFAULT_MODEL_ALIAS


@dataclass(frozen=True)
class SubAgentResult:
    """Summary of a settled sub-agent run."""

    session_id: str
    success: bool
    content: str = ""
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
