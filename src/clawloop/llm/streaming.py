"""Stream accumulation — run the agent loop over a streaming provider.

The loop decides its next action from one complete response per round.
For streaming providers the chunks are accumulated first; the result has
the same content, tool calls and finish reason the non-streaming call
would have produced.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, Callable

from clawloop.llm.message import TokenUsage, ToolCallRequest
from clawloop.llm.provider import (
    ChatProvider,
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
)

logger = logging.getLogger(__name__)

OnText = Callable[[str], None] | None


async def collect_stream(
    chunks: AsyncIterable[StreamChunk],
    on_text: OnText = None,
) -> CompletionResponse:
    """Accumulate a chunk stream into a single CompletionResponse.

    Content deltas are concatenated. Tool call deltas are merged by index:
    the id and name are taken from the first delta that carries them,
    argument fragments are concatenated. The last finish reason and usage
    seen win.

    Args:
        chunks: The provider's chunk stream.
        on_text: Optional callback for each text delta as it arrives.
    """
    text_buffer = ""
    tool_call_buffers: dict[int, dict[str, Any]] = {}  # index -> {id, name, arguments}
    usage: TokenUsage | None = None
    finish_reason: str | None = None

    async for chunk in chunks:
        if chunk.finish_reason:
            finish_reason = chunk.finish_reason

        if chunk.content_delta:
            text_buffer += chunk.content_delta
            if on_text:
                on_text(chunk.content_delta)
                # Let listeners run between chunks.
                await asyncio.sleep(0)

        for delta in chunk.tool_call_deltas:
            buf = tool_call_buffers.setdefault(
                delta.index, {"id": "", "name": "", "arguments": ""}
            )
            if delta.id and not buf["id"]:
                buf["id"] = delta.id
            if delta.name and not buf["name"]:
                buf["name"] = delta.name
            if delta.arguments:
                buf["arguments"] += delta.arguments

        if chunk.usage is not None:
            usage = chunk.usage

    tool_calls = [
        ToolCallRequest(
            id=tool_call_buffers[idx]["id"],
            name=tool_call_buffers[idx]["name"],
            arguments_json=tool_call_buffers[idx]["arguments"],
        )
        for idx in sorted(tool_call_buffers)
    ]

    if finish_reason is None:
        finish_reason = "tool_calls" if tool_calls else "stop"

    return CompletionResponse(
        content=text_buffer,
        tool_calls=tool_calls,
        finish_reason=finish_reason,
        usage=usage,
    )


class StreamingCompletion:
    """Adapt a provider so ``complete`` is served by its ``stream``.

    Lets callers stream text to a UI while the agent loop still sees one
    response per round.
    """

    def __init__(self, provider: ChatProvider, on_text: OnText = None) -> None:
        self._provider = provider
        self._on_text = on_text

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        return await collect_stream(self._provider.stream(request), self._on_text)

    def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        return self._provider.stream(request)
