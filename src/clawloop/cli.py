"""CLI entry point for clawloop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

import typer

from clawloop.agent.events import (
    SubAgentCompletedEvent,
    SubAgentStartedEvent,
    ToolCompletedEvent,
    ToolStartedEvent,
)
from clawloop.agent.loop import AgentLoop
from clawloop.agent.subagent import SubAgentFactory
from clawloop.agent.types import AgentRequest, AgentResult, SubAgentRequest, SubAgentResult
from clawloop.cancel import CancellationToken
from clawloop.config import ClawloopConfig
from clawloop.errors import ProviderError, SubAgentCapacityError
from clawloop.llm.message import Message
from clawloop.llm.provider import DEFAULT_MODEL_ALIAS, ChatProvider, create_provider
from clawloop.llm.resilient import ResilientProvider
from clawloop.session.bus import EventQueue, MessageBus
from clawloop.tool.builtin import DelegateTool, ReadFileTool, ThinkTool
from clawloop.tool.registry import ToolRegistry

T = TypeVar("T")

app = typer.Typer(
    name="clawloop",
    help="Conversational agent runtime: tool-calling loop with sub-agent delegation.",
    no_args_is_help=True,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@dataclass
class Runtime:
    """Everything one CLI invocation needs."""

    provider: ChatProvider
    bus: MessageBus
    tools: ToolRegistry
    factory: SubAgentFactory
    loop: AgentLoop


def _build_provider(config: ClawloopConfig) -> ChatProvider:
    models = [config.llm.model, *config.llm.fallback_models]
    providers = [
        create_provider(
            model=m,
            temperature=config.llm.temperature,
            max_tokens=config.llm.max_tokens,
        )
        for m in models
    ]
    if len(providers) == 1:
        return providers[0]
    return ResilientProvider(providers)


def build_runtime(config: ClawloopConfig, cwd: str | None = None) -> Runtime:
    """Wire provider, tools, bus, factory and loop together.

    Synchronous setup; nothing here talks to the network.
    """
    provider = _build_provider(config)
    bus = MessageBus()
    tools = ToolRegistry()
    factory = SubAgentFactory(
        provider,
        tools,
        bus,
        max_concurrent=config.subagents.max_concurrent,
        max_iterations=config.subagents.max_iterations,
        history_limit=config.subagents.history_limit,
    )
    builtins = [ThinkTool(), ReadFileTool(cwd=cwd), DelegateTool(factory)]
    for tool in builtins:
        tool.overflow_dir = config.tools.overflow_dir
    tools.register_many(builtins)
    loop = AgentLoop(
        provider,
        tools,
        bus,
        max_iterations=config.agent.max_iterations,
        parallel_tool_calls=config.agent.parallel_tool_calls,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )
    return Runtime(provider=provider, bus=bus, tools=tools, factory=factory, loop=loop)


def _load_config(config_file: str | None, model: str | None) -> ClawloopConfig:
    config = ClawloopConfig.load(config_file)
    if model:
        config.llm.model = model
    return config


async def _print_events(queue: EventQueue) -> None:
    """Render lifecycle events until the queue is closed."""
    async for event in queue:
        prefix = f"  [{event.session_id}] " if getattr(event, "session_id", None) else "  "
        if isinstance(event, ToolStartedEvent):
            typer.echo(f"{prefix}> {event.tool_name} {event.arguments_json}")
        elif isinstance(event, ToolCompletedEvent):
            text = event.output if event.success else f"ERROR: {event.error}"
            first_line = text.split("\n")[0][:100] if text else "OK"
            typer.echo(
                f"{prefix}< {event.tool_name} ({event.duration_ms:.0f} ms): {first_line}"
            )
        elif isinstance(event, SubAgentStartedEvent):
            typer.echo(f"\n--- {event.session_id} started ---")
        elif isinstance(event, SubAgentCompletedEvent):
            status = "done" if event.success else f"failed: {event.error}"
            typer.echo(f"--- {event.session_id} {status} ---\n")


async def _with_event_printer(runtime: Runtime, coro: Awaitable[T]) -> T:
    queue = runtime.bus.listen(
        ToolStartedEvent,
        ToolCompletedEvent,
        SubAgentStartedEvent,
        SubAgentCompletedEvent,
    )
    consumer = asyncio.create_task(_print_events(queue))
    try:
        return await coro
    finally:
        queue.close()
        await consumer


async def _run_turn(
    message: str,
    system: str | None,
    timeout: float | None,
    config: ClawloopConfig,
) -> AgentResult:
    runtime = build_runtime(config)
    cancel = CancellationToken.with_timeout(timeout) if timeout else CancellationToken()

    initial: list[Message] = []
    if system:
        initial.append(Message.system(system))
    initial.append(Message.user(message))

    # The provider chain maps the alias to each provider's own model
    request = AgentRequest(model=DEFAULT_MODEL_ALIAS, initial_messages=initial)
    return await _with_event_printer(runtime, runtime.loop.run(request, cancel))


async def _run_spawn(
    task: str,
    system: str | None,
    timeout: float | None,
    config: ClawloopConfig,
) -> SubAgentResult:
    runtime = build_runtime(config)
    cancel = CancellationToken.with_timeout(timeout) if timeout else CancellationToken()
    request = SubAgentRequest(task=task, model=DEFAULT_MODEL_ALIAS, system_prompt=system)
    return await _with_event_printer(runtime, runtime.factory.spawn(request, cancel))


@app.command()
def run(
    message: str = typer.Argument(help="The user message to answer."),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    system: str | None = typer.Option(
        None, "--system", "-s", help="Optional system prompt."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Cancel the turn after this many seconds."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run one agent turn and print the final answer."""
    setup_logging(verbose)
    config = _load_config(config_file, model)

    typer.echo(f"Model: {config.llm.model}")
    typer.echo("---")

    try:
        result = asyncio.run(_run_turn(message, system, timeout, config))
    except ProviderError as e:
        typer.echo(f"Error: provider failed: {e}", err=True)
        raise typer.Exit(1)
    except asyncio.CancelledError:
        typer.echo("Error: turn cancelled", err=True)
        raise typer.Exit(2)

    typer.echo(result.content)
    typer.echo(
        f"---\nFinish reason: {result.finish_reason.value} "
        f"({result.iterations} rounds, {len(result.tool_executions)} tool calls)"
    )
    if result.usage.total_tokens:
        typer.echo(f"Tokens: {result.usage.total_tokens:,}")


@app.command()
def spawn(
    task: str = typer.Argument(help="Task for the isolated sub-agent."),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    system: str | None = typer.Option(
        None, "--system", "-s", help="Optional system prompt for the sub-agent."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Cancel the sub-agent after this many seconds."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run a task as an isolated sub-agent and print its result."""
    setup_logging(verbose)
    config = _load_config(config_file, model)

    try:
        result = asyncio.run(_run_spawn(task, system, timeout, config))
    except SubAgentCapacityError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except asyncio.CancelledError:
        typer.echo("Error: sub-agent cancelled", err=True)
        raise typer.Exit(2)

    typer.echo(f"Session: {result.session_id}")
    if not result.success:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(1)
    typer.echo(result.content)


@app.command()
def tools(
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List the built-in tools available to the agent."""
    runtime = build_runtime(_load_config(config_file, None))
    for spec in runtime.tools.get_specs():
        typer.echo(f"{spec.name}: {spec.description}")


if __name__ == "__main__":
    app()
