"""Tests for clawloop.cli (typer commands and runtime wiring)."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from clawloop.cli import _run_spawn, _run_turn, app, build_runtime
from clawloop.config import ClawloopConfig, LLMConfig, ToolsConfig
from clawloop.llm.resilient import ResilientProvider

from fakes import GatedProvider, ScriptedProvider, text_response, tool_response

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CLAWLOOP_MODEL",
        "CLAWLOOP_MAX_ITERATIONS",
        "CLAWLOOP_PARALLEL_TOOLS",
        "CLAWLOOP_MAX_CONCURRENT_SUBAGENTS",
        "CLAWLOOP_TOOL_OUTPUT_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# build_runtime
# ---------------------------------------------------------------------------


class TestBuildRuntime:
    def test_registers_builtin_tools(self) -> None:
        runtime = build_runtime(ClawloopConfig())
        assert [s.name for s in runtime.tools.get_specs()] == ["think", "read_file", "delegate"]
        assert runtime.loop.max_iterations == 25
        assert runtime.factory.max_concurrent == 5

    def test_fallback_models_use_resilient_provider(self) -> None:
        config = ClawloopConfig(llm=LLMConfig(fallback_models=["openai/gpt-4o"]))
        runtime = build_runtime(config)
        assert isinstance(runtime.provider, ResilientProvider)

    def test_overflow_dir_applied_to_builtin_tools(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        config = ClawloopConfig(tools=ToolsConfig(overflow_dir=str(tmp_path)))
        runtime = build_runtime(config)
        for name in ("think", "read_file", "delegate"):
            assert runtime.tools.get(name).overflow_dir == str(tmp_path)  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Fallback models
# ---------------------------------------------------------------------------


def _litellm_reply(text: str) -> SimpleNamespace:
    message = SimpleNamespace(content=text, tool_calls=None)
    return SimpleNamespace(
        choices=[SimpleNamespace(message=message, finish_reason="stop")], usage=None
    )


class TestFallbackModels:
    def _config(self) -> ClawloopConfig:
        return ClawloopConfig(
            llm=LLMConfig(model="openai/primary", fallback_models=["openai/backup"])
        )

    def _fake_acompletion(self, called: list[str]):  # type: ignore[no-untyped-def]
        async def acompletion(**kwargs: Any) -> SimpleNamespace:
            called.append(kwargs["model"])
            if kwargs["model"] == "openai/primary":
                raise RuntimeError("primary down")
            return _litellm_reply(f"from {kwargs['model']}")

        return acompletion

    async def test_turn_falls_back_to_backup_model(self) -> None:
        called: list[str] = []
        with patch("litellm.acompletion", self._fake_acompletion(called)):
            result = await _run_turn("hi", None, None, self._config())

        assert result.content == "from openai/backup"
        assert called == ["openai/primary", "openai/backup"]

    async def test_spawn_falls_back_to_backup_model(self) -> None:
        called: list[str] = []
        with patch("litellm.acompletion", self._fake_acompletion(called)):
            result = await _run_spawn("task", None, None, self._config())

        assert result.success is True
        assert result.content == "from openai/backup"
        assert called == ["openai/primary", "openai/backup"]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestRunCommand:
    def test_prints_answer_and_events(self) -> None:
        provider = ScriptedProvider(
            tool_response(("call_1", "think", '{"thought": "plan"}')),
            text_response("Final answer"),
        )
        with patch("clawloop.cli.create_provider", return_value=provider):
            result = runner.invoke(app, ["run", "What now?", "--model", "test/model"])

        assert result.exit_code == 0, result.output
        assert "Model: test/model" in result.output
        assert "> think" in result.output
        assert "Final answer" in result.output
        assert "Finish reason: stop (2 rounds, 1 tool calls)" in result.output
        assert provider.requests[0].model == "default"

    def test_system_prompt(self) -> None:
        provider = ScriptedProvider(text_response("ok"))
        with patch("clawloop.cli.create_provider", return_value=provider):
            result = runner.invoke(app, ["run", "hi", "--system", "Be brief"])

        assert result.exit_code == 0, result.output
        assert [m.role for m in provider.requests[0].messages] == ["system", "user"]

    def test_provider_failure_exits_1(self) -> None:
        provider = ScriptedProvider(RuntimeError("quota exceeded"))
        with patch("clawloop.cli.create_provider", return_value=provider):
            result = runner.invoke(app, ["run", "hi"])

        assert result.exit_code == 1
        assert "quota exceeded" in result.output

    def test_timeout_exits_2(self) -> None:
        with patch("clawloop.cli.create_provider", return_value=GatedProvider()):
            result = runner.invoke(app, ["run", "hi", "--timeout", "0.05"])

        assert result.exit_code == 2
        assert "cancelled" in result.output


class TestSpawnCommand:
    def test_success(self) -> None:
        provider = ScriptedProvider(text_response("sub answer"))
        with patch("clawloop.cli.create_provider", return_value=provider):
            result = runner.invoke(app, ["spawn", "Summarize"])

        assert result.exit_code == 0, result.output
        assert "Session: subagent:" in result.output
        assert "sub answer" in result.output

    def test_failure_exits_1(self) -> None:
        provider = ScriptedProvider(RuntimeError("down"))
        with patch("clawloop.cli.create_provider", return_value=provider):
            result = runner.invoke(app, ["spawn", "Summarize"])

        assert result.exit_code == 1
        assert "down" in result.output


class TestToolsCommand:
    def test_lists_tools(self) -> None:
        result = runner.invoke(app, ["tools"])

        assert result.exit_code == 0, result.output
        lines = result.output.strip().split("\n")
        assert [line.split(":")[0] for line in lines] == ["think", "read_file", "delegate"]
