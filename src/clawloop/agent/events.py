"""Lifecycle events published on the message bus.

``session_id`` is None for a direct agent loop run and the sub-agent's
session id for spawned runs, so observers can attribute tool activity.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ToolStartedEvent:
    tool_call_id: str
    tool_name: str
    arguments_json: str
    session_id: str | None = None


@dataclass(frozen=True)
class ToolCompletedEvent:
    tool_call_id: str
    tool_name: str
    success: bool
    output: str
    error: str | None
    duration_ms: float
    session_id: str | None = None


@dataclass(frozen=True)
class SubAgentStartedEvent:
    session_id: str
    task: str
    model: str


@dataclass(frozen=True)
class SubAgentCompletedEvent:
    session_id: str
    success: bool
    error: str | None
    duration_ms: float
