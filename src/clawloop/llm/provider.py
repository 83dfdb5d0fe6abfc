"""LLM provider abstraction — unified via litellm.

The agent loop only talks to the ``ChatProvider`` protocol: one
non-streaming ``complete`` call per round, plus a ``stream`` variant that
yields incremental ``StreamChunk`` objects with the same finish-reason and
tool-call shape. litellm handles all provider-specific details (OpenAI,
Anthropic, Ollama, ...) and normalizes both forms to the OpenAI format,
which we convert to our own dataclasses here.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clawloop.llm.message import Message, TokenUsage, ToolCallRequest

if TYPE_CHECKING:
    from litellm import CustomStreamWrapper, ModelResponse

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ALIAS = "default"


@dataclass(frozen=True)
class ToolSpec:
    """Specification of a tool the model can call."""

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> dict[str, Any]:
        """Convert to the OpenAI function tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class CompletionRequest:
    """A request to an LLM provider."""

    model: str
    messages: list[Message]
    tools: list[ToolSpec] | None = None
    temperature: float = 0.7
    max_tokens: int | None = None


@dataclass
class CompletionResponse:
    """Response from a non-streaming completion.

    ``finish_reason`` is one of "stop", "tool_calls", "length".
    """

    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: TokenUsage | None = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


@dataclass
class ToolCallDelta:
    """An incremental fragment of one tool call inside a stream."""

    index: int = 0
    id: str | None = None
    name: str | None = None
    arguments: str | None = None  # fragment of the JSON arguments text


@dataclass
class StreamChunk:
    """A single chunk from a streaming completion."""

    content_delta: str | None = None
    tool_call_deltas: list[ToolCallDelta] = field(default_factory=list)
    finish_reason: str | None = None  # Present only in the final chunk
    usage: TokenUsage | None = None


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""

    model: str
    temperature: float | None = None
    max_tokens: int | None = None


@runtime_checkable
class ChatProvider(Protocol):
    """Protocol for LLM providers."""

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Run one non-streaming chat completion."""
        ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream a chat completion chunk by chunk."""
        ...


# ---------------------------------------------------------------------------
# litellm provider
# ---------------------------------------------------------------------------


@dataclass
class LiteLLMProvider:
    """Unified LLM provider using litellm.

    litellm detects the provider from the model string prefix
    (e.g. "anthropic/claude-...", "ollama/llama3", "openai/gpt-4o")
    and reads API keys from environment variables automatically.
    Requests for the ``"default"`` model use the configured model.
    """

    _config: ProviderConfig

    @property
    def config(self) -> ProviderConfig:
        return self._config

    def _build_kwargs(self, request: CompletionRequest) -> dict[str, Any]:
        model = request.model
        if not model or model == DEFAULT_MODEL_ALIAS:
            model = self._config.model

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [m.to_openai_dict() for m in request.messages],
        }
        if request.tools:
            kwargs["tools"] = [t.to_openai() for t in request.tools]

        temperature = request.temperature
        if self._config.temperature is not None:
            temperature = self._config.temperature
        kwargs["temperature"] = temperature

        max_tokens = request.max_tokens or self._config.max_tokens
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        return kwargs

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        kwargs = self._build_kwargs(request)
        response = await _acompletion_with_retry(**kwargs)
        return _response_from_litellm(response)

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream from litellm, yielding normalized chunks."""
        kwargs = self._build_kwargs(request)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}

        response = await _acompletion_with_retry(**kwargs)

        async for chunk in response:  # type: ignore[union-attr]
            yield _chunk_from_litellm(chunk)


@retry(
    retry=retry_if_exception_type((ConnectionError, TimeoutError, OSError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
async def _acompletion_with_retry(**kwargs: Any) -> CustomStreamWrapper | ModelResponse:
    """Call litellm.acompletion with retry on transient errors."""
    import litellm

    return await litellm.acompletion(**kwargs)


def _usage_from_litellm(usage: Any) -> TokenUsage | None:
    if not usage:
        return None
    return TokenUsage(
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        total_tokens=getattr(usage, "total_tokens", 0) or 0,
    )


def _response_from_litellm(response: Any) -> CompletionResponse:
    """Convert a litellm ModelResponse to a CompletionResponse.

    litellm responses have the same shape as OpenAI ChatCompletion objects:
      response.choices[0].message.{content, tool_calls},
      response.choices[0].finish_reason, response.usage
    """
    choices = getattr(response, "choices", None)
    if not choices:
        raise ValueError("provider response has no choices")

    choice = choices[0]
    message = choice.message
    tool_calls = [
        ToolCallRequest(
            id=tc.id or "",
            name=tc.function.name or "",
            arguments_json=tc.function.arguments or "",
        )
        for tc in (getattr(message, "tool_calls", None) or [])
    ]
    return CompletionResponse(
        content=message.content or "",
        tool_calls=tool_calls,
        finish_reason=choice.finish_reason or ("tool_calls" if tool_calls else "stop"),
        usage=_usage_from_litellm(getattr(response, "usage", None)),
    )


def _chunk_from_litellm(chunk: Any) -> StreamChunk:
    """Convert a litellm ModelResponseStream chunk to a StreamChunk."""
    result = StreamChunk(usage=_usage_from_litellm(getattr(chunk, "usage", None)))

    choices = getattr(chunk, "choices", None)
    if not choices:
        return result

    choice = choices[0]
    delta = choice.delta
    result.finish_reason = choice.finish_reason
    if delta.content is not None:
        result.content_delta = delta.content

    for tc in delta.tool_calls or []:
        func = tc.function
        result.tool_call_deltas.append(
            ToolCallDelta(
                index=tc.index or 0,
                id=tc.id,
                name=func.name if func else None,
                arguments=func.arguments if func else None,
            )
        )
    return result


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_provider(
    model: str,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> ChatProvider:
    """Create a LiteLLM provider.

    Args:
        model: Model name with provider prefix (e.g. "openai/gpt-4o-mini",
               "anthropic/claude-sonnet-4-5-20250929", "ollama/llama3").
               This model also serves requests for the "default" alias.
        temperature: Sampling temperature override.
        max_tokens: Max output tokens.

    Returns:
        A ChatProvider instance.
    """
    config = ProviderConfig(model=model, temperature=temperature, max_tokens=max_tokens)
    return LiteLLMProvider(_config=config)
