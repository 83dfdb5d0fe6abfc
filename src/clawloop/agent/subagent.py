"""Sub-agent factory — isolated, admission-controlled nested agent runs.

Each spawn gets a fresh session id and a fresh message history, runs its
own ``AgentLoop`` and reports back a ``SubAgentResult``. At most
``max_concurrent`` spawns are in flight at once; a spawn that finds no
free slot is rejected immediately instead of waiting, so a delegating
caller can decide to retry later rather than stall its own turn.
"""

from __future__ import annotations

import asyncio
import collections
import logging
import threading
import time
import uuid
from datetime import datetime, timezone

from clawloop.agent.events import SubAgentCompletedEvent, SubAgentStartedEvent
from clawloop.agent.loop import AgentLoop
from clawloop.agent.types import (
    AgentRequest,
    FinishReason,
    SubAgentRequest,
    SubAgentResult,
)
from clawloop.cancel import CancellationToken
from clawloop.errors import SubAgentCapacityError
from clawloop.llm.message import Message
from clawloop.llm.provider import ChatProvider
from clawloop.session.bus import MessageBus
from clawloop.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 5
DEFAULT_SUBAGENT_MAX_ITERATIONS = 10
SESSION_PREFIX = "subagent:"


class SubAgentFactory:
    """Spawn independent agent runs under a process-wide concurrency ceiling."""

    def __init__(
        self,
        provider: ChatProvider,
        tools: ToolRegistry,
        bus: MessageBus,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        max_iterations: int = DEFAULT_SUBAGENT_MAX_ITERATIONS,
        history_limit: int | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if history_limit is not None and history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self._provider = provider
        self._tools = tools
        self._bus = bus
        self._max_concurrent = max_concurrent
        self._max_iterations = max_iterations
        self._active_count = 0
        self._completed: collections.deque[SubAgentResult] = collections.deque(
            maxlen=history_limit
        )
        self._lock = threading.Lock()

    @property
    def active_count(self) -> int:
        """Number of spawns currently in flight."""
        with self._lock:
            return self._active_count

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    @property
    def completed_sessions(self) -> list[SubAgentResult]:
        """Every settled result since creation, oldest first."""
        with self._lock:
            return list(self._completed)

    async def spawn(
        self, request: SubAgentRequest, cancel: CancellationToken | None = None
    ) -> SubAgentResult:
        """Run ``request`` as an isolated sub-agent.

        Provider and tool failures come back as ``success=False``; they
        never raise.

        Raises:
            SubAgentCapacityError: No slot was free; nothing was run.
            ValueError: The request asks for fewer than one round.
            asyncio.CancelledError: The run was cancelled; nothing is recorded.
        """
        cancel = cancel or CancellationToken()
        cancel.raise_if_cancelled()
        self._claim_slot()
        try:
            return await self._run(request, cancel)
        finally:
            self._release_slot()

    def _claim_slot(self) -> None:
        with self._lock:
            if self._active_count >= self._max_concurrent:
                logger.warning(
                    "Sub-agent rejected: %d/%d slots in use",
                    self._active_count,
                    self._max_concurrent,
                )
                raise SubAgentCapacityError(self._max_concurrent)
            self._active_count += 1

    def _release_slot(self) -> None:
        with self._lock:
            self._active_count -= 1

    async def _run(
        self, request: SubAgentRequest, cancel: CancellationToken
    ) -> SubAgentResult:
        session_id = f"{SESSION_PREFIX}{uuid.uuid4().hex}"
        model = request.resolved_model
        max_iterations = (
            self._max_iterations if request.max_iterations is None else request.max_iterations
        )
        loop = AgentLoop(
            self._provider,
            self._tools,
            self._bus,
            max_iterations=max_iterations,
            session_id=session_id,
        )

        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()

        logger.info("Spawning sub-agent %s for task: %s", session_id, _truncate(request.task))
        await self._bus.publish(
            SubAgentStartedEvent(session_id=session_id, task=request.task, model=model)
        )

        try:
            outcome = await loop.run(
                AgentRequest(model=model, initial_messages=_build_messages(request)),
                cancel,
            )
        except asyncio.CancelledError:
            logger.info("Sub-agent %s cancelled", session_id)
            raise
        except Exception as e:
            logger.error("Sub-agent %s failed: %s", session_id, e, exc_info=True)
            result = SubAgentResult(
                session_id=session_id,
                success=False,
                error=str(e),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )
        else:
            if outcome.finish_reason is FinishReason.STOP:
                logger.info("Sub-agent %s completed successfully", session_id)
                result = SubAgentResult(
                    session_id=session_id,
                    success=True,
                    content=outcome.content,
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                )
            else:
                logger.warning(
                    "Sub-agent %s stopped without an answer (%s)",
                    session_id,
                    outcome.finish_reason.value,
                )
                result = SubAgentResult(
                    session_id=session_id,
                    success=False,
                    content=outcome.content,
                    error=f"Maximum iteration limit ({max_iterations}) reached",
                    started_at=started_at,
                    completed_at=datetime.now(timezone.utc),
                )

        with self._lock:
            self._completed.append(result)

        await self._bus.publish(
            SubAgentCompletedEvent(
                session_id=session_id,
                success=result.success,
                error=result.error,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        )
        return result


def _build_messages(request: SubAgentRequest) -> list[Message]:
    messages: list[Message] = []
    if request.system_prompt:
        messages.append(Message.system(request.system_prompt))
    messages.append(Message.user(request.task))
    return messages


def _truncate(text: str, max_length: int = 100) -> str:
    return text if len(text) <= max_length else text[:max_length] + "..."
