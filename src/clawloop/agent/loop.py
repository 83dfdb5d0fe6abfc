"""The core agent loop — the heart of clawloop."""

from __future__ import annotations

import asyncio
import logging
import time

from clawloop.agent.events import ToolCompletedEvent, ToolStartedEvent
from clawloop.agent.types import AgentRequest, AgentResult, FinishReason, ToolExecution
from clawloop.cancel import CancellationToken
from clawloop.errors import ProviderError
from clawloop.llm.message import Message, TokenUsage, ToolCallRequest
from clawloop.llm.provider import ChatProvider, CompletionRequest, CompletionResponse
from clawloop.session.bus import MessageBus
from clawloop.tool.base import Tool, ToolResult
from clawloop.tool.registry import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 25
DEFAULT_TEMPERATURE = 0.7


def max_iterations_message(limit: int) -> str:
    return (
        f"Maximum iteration limit ({limit}) reached. "
        "Consider increasing the limit or optimizing your tool usage."
    )


class AgentLoop:
    """Drive one conversation turn to a final answer.

    Each round asks the provider for the next action. A response without
    tool calls ends the run. Otherwise every requested tool is executed, its
    result is appended as a tool-role message tagged with the call id, and
    the provider is asked again with the extended history.

    The loop holds no per-run state, so one instance can serve any number
    of concurrent runs.
    """

    def __init__(
        self,
        provider: ChatProvider,
        tools: ToolRegistry,
        bus: MessageBus,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        parallel_tool_calls: bool = False,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = None,
        session_id: str | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._provider = provider
        self._tools = tools
        self._bus = bus
        self._max_iterations = max_iterations
        self._parallel_tool_calls = parallel_tool_calls
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._session_id = session_id

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def run(
        self, request: AgentRequest, cancel: CancellationToken | None = None
    ) -> AgentResult:
        """Run the loop until the model answers or the round cap is hit.

        Raises:
            ProviderError: The provider failed. ``exc.result`` holds the
                partial run with ``finish_reason=FAILED``.
            asyncio.CancelledError: The token was cancelled.
        """
        cancel = cancel or CancellationToken()
        messages: list[Message] = list(request.initial_messages)
        executions: list[ToolExecution] = []
        usage = TokenUsage()

        specs = self._tools.get_specs()
        tool_specs = specs if specs else None

        for round_no in range(1, self._max_iterations + 1):
            cancel.raise_if_cancelled()
            logger.info("Agent loop: round %d/%d", round_no, self._max_iterations)

            completion = CompletionRequest(
                model=request.model,
                messages=list(messages),
                tools=tool_specs,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            try:
                response = await cancel.guard(self._provider.complete(completion))
                _check_response(response)
            except Exception as e:
                logger.error(
                    "Agent loop: provider failed at round %d: %s",
                    round_no,
                    e,
                    exc_info=True,
                )
                failed = AgentResult(
                    content="",
                    tool_executions=executions,
                    finish_reason=FinishReason.FAILED,
                    messages=messages,
                    iterations=round_no,
                    usage=usage,
                )
                raise ProviderError(str(e), result=failed) from e

            if response.usage is not None:
                usage = usage + response.usage

            if not response.tool_calls:
                if response.finish_reason == "length":
                    logger.warning("Agent loop: response truncated (finish_reason=length)")
                messages.append(Message.assistant(response.content))
                logger.info("Agent loop completed after %d rounds", round_no)
                return AgentResult(
                    content=response.content,
                    tool_executions=executions,
                    finish_reason=FinishReason.STOP,
                    messages=messages,
                    iterations=round_no,
                    usage=usage,
                )

            messages.append(Message.assistant(response.content, response.tool_calls))

            if self._parallel_tool_calls:
                outcomes = await self._execute_parallel(response.tool_calls, cancel)
            else:
                outcomes = []
                for tc in response.tool_calls:
                    outcomes.append(await self._execute_tool(tc, cancel))

            for execution, tool_message in outcomes:
                executions.append(execution)
                messages.append(tool_message)

        logger.warning("Agent loop hit max iterations (%d)", self._max_iterations)
        return AgentResult(
            content=max_iterations_message(self._max_iterations),
            tool_executions=executions,
            finish_reason=FinishReason.MAX_ITERATIONS,
            messages=messages,
            iterations=self._max_iterations,
            usage=usage,
        )

    async def _execute_parallel(
        self, calls: list[ToolCallRequest], cancel: CancellationToken
    ) -> list[tuple[ToolExecution, Message]]:
        """Run one round's tool calls concurrently, results in call order.

        If any call is cancelled or raises, the remaining calls are
        cancelled and awaited before the error propagates, so no tool
        outlives the run.
        """
        tasks = [asyncio.ensure_future(self._execute_tool(tc, cancel)) for tc in calls]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _execute_tool(
        self, call: ToolCallRequest, cancel: CancellationToken
    ) -> tuple[ToolExecution, Message]:
        cancel.raise_if_cancelled()

        tool = self._tools.get(call.name)
        started = time.perf_counter()
        if tool is None:
            logger.warning("Model requested unknown tool: %s", call.name)
            result = ToolResult.fail(f"unknown tool: {call.name}")
        else:
            await self._bus.publish(
                ToolStartedEvent(
                    tool_call_id=call.id,
                    tool_name=call.name,
                    arguments_json=call.arguments_json,
                    session_id=self._session_id,
                )
            )
            result = await _invoke_tool(tool, call, cancel)

        duration_ms = (time.perf_counter() - started) * 1000

        if tool is not None:
            await self._bus.publish(
                ToolCompletedEvent(
                    tool_call_id=call.id,
                    tool_name=call.name,
                    success=result.success,
                    output=result.output,
                    error=result.error,
                    duration_ms=duration_ms,
                    session_id=self._session_id,
                )
            )

        execution = ToolExecution(
            tool_call_id=call.id,
            tool_name=call.name,
            arguments_json=call.arguments_json,
            success=result.success,
            output=result.output,
            error=result.error,
            duration_ms=duration_ms,
        )
        message = Message.tool_result(call.id, result.as_message_content(), name=call.name)
        return execution, message


async def _invoke_tool(
    tool: Tool, call: ToolCallRequest, cancel: CancellationToken
) -> ToolResult:
    """Execute a tool, turning every failure into a failed ToolResult."""
    try:
        arguments = call.arguments()
    except ValueError as e:
        return ToolResult.fail(f"invalid arguments: {e}")

    try:
        result = await tool.execute(arguments, cancel)
    except Exception as e:
        logger.error("Tool %s raised: %s", call.name, e, exc_info=True)
        return ToolResult.fail(f"Error executing tool: {e}")

    if not isinstance(result, ToolResult):
        return ToolResult.fail(
            f"tool {call.name} returned {type(result).__name__}, expected ToolResult"
        )
    return result


def _check_response(response: object) -> None:
    if not isinstance(response, CompletionResponse):
        raise TypeError(
            f"malformed provider response: expected CompletionResponse, "
            f"got {type(response).__name__}"
        )
