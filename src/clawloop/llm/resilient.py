"""Provider fallback chain with retry on transient errors."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clawloop.errors import ProviderError
from clawloop.llm.provider import (
    ChatProvider,
    CompletionRequest,
    CompletionResponse,
    StreamChunk,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    OSError,
)


class ResilientProvider:
    """Try each provider in order until one answers.

    Transient errors are retried on the same provider with exponential
    backoff. Any other error moves on to the next provider. When every
    provider has failed, a ``ProviderError`` listing all errors is raised.
    Cancellation always propagates immediately.
    """

    def __init__(
        self,
        providers: Sequence[ChatProvider],
        max_retries: int = MAX_RETRIES,
        backoff_min: float = 1.0,
        backoff_max: float = 30.0,
    ) -> None:
        if not providers:
            raise ValueError("ResilientProvider needs at least one provider")
        self._providers = list(providers)
        self._max_retries = max_retries
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self._max_retries),
            wait=wait_exponential(
                multiplier=1, min=self._backoff_min, max=self._backoff_max
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        errors: list[Exception] = []
        for index, provider in enumerate(self._providers):
            try:
                async for attempt in self._retrying():
                    with attempt:
                        return await provider.complete(request)
            except Exception as e:
                logger.warning(
                    "Provider #%d failed (%s), falling back to next provider",
                    index,
                    e,
                )
                errors.append(e)

        raise ProviderError(
            "All providers exhausted. Errors: " + "; ".join(str(e) for e in errors)
        ) from errors[0]

    async def stream(self, request: CompletionRequest) -> AsyncIterator[StreamChunk]:
        """Stream from the first provider whose stream starts successfully.

        Once the first chunk has been yielded the stream is committed to
        that provider; later errors propagate unchanged.
        """
        errors: list[Exception] = []
        for index, provider in enumerate(self._providers):
            iterator = provider.stream(request).__aiter__()
            try:
                first = await iterator.__anext__()
            except StopAsyncIteration:
                return
            except Exception as e:
                logger.warning("Provider #%d failed to stream (%s)", index, e)
                errors.append(e)
                continue

            yield first
            async for chunk in iterator:
                yield chunk
            return

        raise ProviderError(
            "All providers exhausted during streaming. Errors: "
            + "; ".join(str(e) for e in errors)
        ) from errors[0]
