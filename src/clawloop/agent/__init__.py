"""Agent orchestration — the loop, its types and the sub-agent factory."""

from clawloop.agent.events import (
    SubAgentCompletedEvent,
    SubAgentStartedEvent,
    ToolCompletedEvent,
    ToolStartedEvent,
)
from clawloop.agent.loop import AgentLoop
from clawloop.agent.subagent import SubAgentFactory
from clawloop.agent.types import (
    AgentRequest,
    AgentResult,
    FinishReason,
    SubAgentRequest,
    SubAgentResult,
    ToolExecution,
)

__all__ = [
    "AgentLoop",
    "SubAgentFactory",
    "AgentRequest",
    "AgentResult",
    "FinishReason",
    "SubAgentRequest",
    "SubAgentResult",
    "ToolExecution",
    "ToolStartedEvent",
    "ToolCompletedEvent",
    "SubAgentStartedEvent",
    "SubAgentCompletedEvent",
]
