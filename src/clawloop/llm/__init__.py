"""LLM abstraction layer — unified via litellm."""

from clawloop.llm.message import Message, TokenUsage, ToolCallRequest
from clawloop.llm.provider import (
    ChatProvider,
    CompletionRequest,
    CompletionResponse,
    LiteLLMProvider,
    ProviderConfig,
    StreamChunk,
    ToolCallDelta,
    ToolSpec,
    create_provider,
)
from clawloop.llm.resilient import ResilientProvider
from clawloop.llm.streaming import StreamingCompletion, collect_stream

__all__ = [
    "Message",
    "TokenUsage",
    "ToolCallRequest",
    "ChatProvider",
    "CompletionRequest",
    "CompletionResponse",
    "LiteLLMProvider",
    "ProviderConfig",
    "StreamChunk",
    "ToolCallDelta",
    "ToolSpec",
    "create_provider",
    "ResilientProvider",
    "StreamingCompletion",
    "collect_stream",
]
