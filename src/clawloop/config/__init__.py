"""Configuration — Pydantic models for clawloop settings."""

from __future__ import annotations

import json
import os
from typing import Any

from pydantic import BaseModel, Field

from clawloop.tool.truncation import OVERFLOW_DIR


class LLMConfig(BaseModel):
    """LLM provider configuration.

    Model names use litellm's provider-prefix format:
        "openai/gpt-4o-mini"
        "anthropic/claude-sonnet-4-5-20250929"
        "ollama/llama3"

    API keys are read from env vars automatically by litellm
    (OPENAI_API_KEY, ANTHROPIC_API_KEY, ...).
    """

    model: str = Field(default="openai/gpt-4o-mini")
    fallback_models: list[str] = Field(
        default_factory=list,
        description="Models tried in order when the primary model fails.",
    )
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None)


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_iterations: int = Field(
        default=25, ge=1, description="Max model/tool rounds per turn"
    )
    parallel_tool_calls: bool = Field(
        default=False,
        description="Run the tool calls of one round concurrently",
    )


class SubAgentConfig(BaseModel):
    """Sub-agent factory configuration."""

    max_concurrent: int = Field(
        default=5, ge=1, description="Max sub-agents in flight at once"
    )
    max_iterations: int = Field(
        default=10, ge=1, description="Round cap for each sub-agent run"
    )
    history_limit: int | None = Field(
        default=None,
        ge=1,
        description="Keep only the most recent N completed runs (None: keep all)",
    )


class ToolsConfig(BaseModel):
    """Built-in tool configuration."""

    overflow_dir: str | None = Field(
        default=OVERFLOW_DIR,
        description="Where the full text of truncated tool output is saved (None: discard)",
    )


class ClawloopConfig(BaseModel):
    """Top-level clawloop configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    subagents: SubAgentConfig = Field(default_factory=SubAgentConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> ClawloopConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            OPENAI_API_KEY / ANTHROPIC_API_KEY  - read by litellm automatically
            CLAWLOOP_MODEL                      - primary model (litellm format)
            CLAWLOOP_MAX_ITERATIONS             - agent loop round cap
            CLAWLOOP_PARALLEL_TOOLS             - "1"/"true" to run tool calls concurrently
            CLAWLOOP_MAX_CONCURRENT_SUBAGENTS   - sub-agent slot ceiling
            CLAWLOOP_TOOL_OUTPUT_DIR            - overflow directory for truncated tool output
        """
        from dotenv import load_dotenv

        load_dotenv()

        config_data: dict[str, Any] = {}
        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        llm = config_data.setdefault("llm", {})
        agent = config_data.setdefault("agent", {})
        subagents = config_data.setdefault("subagents", {})
        tools = config_data.setdefault("tools", {})

        env_model = os.environ.get("CLAWLOOP_MODEL")
        if env_model:
            llm["model"] = env_model

        env_max_iterations = os.environ.get("CLAWLOOP_MAX_ITERATIONS")
        if env_max_iterations:
            agent["max_iterations"] = int(env_max_iterations)

        env_parallel = os.environ.get("CLAWLOOP_PARALLEL_TOOLS")
        if env_parallel:
            agent["parallel_tool_calls"] = env_parallel.strip().lower() in (
                "1",
                "true",
                "yes",
                "on",
            )

        env_max_concurrent = os.environ.get("CLAWLOOP_MAX_CONCURRENT_SUBAGENTS")
        if env_max_concurrent:
            subagents["max_concurrent"] = int(env_max_concurrent)

        env_output_dir = os.environ.get("CLAWLOOP_TOOL_OUTPUT_DIR")
        if env_output_dir:
            tools["overflow_dir"] = env_output_dir

        return cls.model_validate(config_data)
