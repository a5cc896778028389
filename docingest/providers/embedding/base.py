"""Shared behaviour for every hosted AI provider.

:class:`BaseAIProvider` implements the public :class:`IEmbeddingProvider`
methods once and leaves three wire-level hooks to subclasses
(``_chat``, ``_stream``, ``_embed``).  Around each hook it applies, in
order:

    1. Input validation (empty prompt / empty text -> ``ValueError``)
    2. The in-flight guard: at most ``max_concurrent_requests`` calls per
       instance; one more fails fast with :class:`ConcurrencyLimitError`
    3. Rate-limit admission through the shared :class:`RateLimiter`
    4. The :class:`RetryHandler`, classifying failures with
       :func:`classify_provider_error`

Steps 3 and 4 are combined in :meth:`_with_retry`: the admission check runs
inside the retried operation, so a refused call waits out the backoff and
asks the bucket again.
"""

from __future__ import annotations

from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import structlog

from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.models.provider import ChatMessage, ChatResponse, EmbeddingResult
from docingest.utils.errors import (
    ConcurrencyLimitError,
    ProviderError,
    RateLimitError,
)
from docingest.utils.rate_limiter import RateLimiter, get_rate_limiter
from docingest.utils.retry import (
    FATAL,
    SERVER_ERROR,
    SERVICE_UNAVAILABLE,
    RetryHandler,
    classify_provider_error,
)

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

DEFAULT_MAX_CONCURRENT_REQUESTS = 5
_HEALTH_CHECK_TEXT = "ping"


def error_for_status(
    status: int,
    message: str,
    provider_name: str,
    retry_after_ms: int = 0,
) -> ProviderError:
    """Build the provider error matching an HTTP error status.

    429 is a :class:`RateLimitError`; 503 and other 5xx responses are
    retryable; every other status is fatal.
    """
    if status == 429:
        return RateLimitError(
            message or "Rate limit exceeded",
            provider_name=provider_name,
            retry_after_ms=retry_after_ms,
        )
    if status == 503:
        error_type = SERVICE_UNAVAILABLE
    elif status >= 500:
        error_type = SERVER_ERROR
    else:
        error_type = FATAL
    return ProviderError(
        message or f"HTTP error {status}",
        provider_name=provider_name,
        status=status,
        error_type=error_type,
        retryable=error_type != FATAL,
    )


def _validate_messages(messages: list[ChatMessage]) -> None:
    if not messages or not messages[-1].content.strip():
        raise ValueError("Empty prompt")


class BaseAIProvider(IEmbeddingProvider):
    """Rate-limited, retried, concurrency-bounded provider base.

    Parameters
    ----------
    name:
        Provider key; also the rate-limit bucket name.
    api_key:
        Credential; an empty key makes :meth:`is_available` return ``False``.
    rate_limiter:
        Shared limiter; defaults to the process-wide instance.
    retry_handler:
        Backoff policy; defaults to :class:`RetryHandler` defaults.
    max_concurrent_requests:
        In-flight budget for this instance.
    """

    def __init__(
        self,
        name: str,
        api_key: str,
        rate_limiter: RateLimiter | None = None,
        retry_handler: RetryHandler | None = None,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
    ) -> None:
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        self._name = name
        self._api_key = api_key
        self._rate_limiter = rate_limiter or get_rate_limiter()
        self._retry_handler = retry_handler or RetryHandler()
        self._max_concurrent = max_concurrent_requests
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Wire-level hooks implemented by concrete providers
    # ------------------------------------------------------------------

    @abstractmethod
    async def _chat(self, messages: list[ChatMessage]) -> ChatResponse:
        """Perform one chat call; raise :class:`ProviderError` on failure."""

    @abstractmethod
    def _stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Open a streaming chat call and yield text fragments."""

    @abstractmethod
    async def _embed(self, text: str) -> EmbeddingResult:
        """Perform one embedding call; raise :class:`ProviderError` on failure."""

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def chat(self, messages: list[ChatMessage]) -> ChatResponse:
        _validate_messages(messages)
        async with self._concurrency_slot():
            response = await self._with_retry(lambda: self._chat(messages))
        logger.info(
            "provider_chat_complete",
            provider=self._name,
            model=response.model,
            tokens=response.usage.total_tokens,
        )
        return response

    async def chat_stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Stream reply fragments.

        Admission and retries apply to opening the stream only; an error
        after the first fragment propagates to the consumer.
        """
        _validate_messages(messages)
        async with self._concurrency_slot():
            await self._retry_handler.execute(
                self._admit_async, error_classifier=classify_provider_error
            )
            async for fragment in self._stream(messages):
                yield fragment

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        if not text or not text.strip():
            raise ValueError("Empty text")
        async with self._concurrency_slot():
            result = await self._with_retry(lambda: self._embed(text))
        logger.debug(
            "provider_embedding_complete",
            provider=self._name,
            dimension=result.dimension,
            tokens=result.usage.total_tokens,
        )
        return result

    async def is_available(self) -> bool:
        """Probe with a minimal embedding call; never raises."""
        if not self._api_key:
            return False
        try:
            await self.generate_embedding(_HEALTH_CHECK_TEXT)
            return True
        except Exception as exc:
            logger.warning(
                "provider_health_check_failed",
                provider=self._name,
                error=str(exc),
            )
            return False

    def get_provider_name(self) -> str:
        return self._name

    @property
    def max_concurrent_requests(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        return self._in_flight

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _concurrency_slot(self) -> AsyncIterator[None]:
        if self._in_flight >= self._max_concurrent:
            raise ConcurrencyLimitError(provider_name=self._name)
        self._in_flight += 1
        try:
            yield
        finally:
            self._in_flight -= 1

    def _admit(self) -> None:
        """Take a rate-limit token or raise a retryable :class:`RateLimitError`."""
        if not self._rate_limiter.check_limit(self._name):
            retry_after = self._rate_limiter.get_retry_after(self._name)
            raise RateLimitError(
                f"Rate limit exceeded. Retry after {retry_after}ms",
                provider_name=self._name,
                retry_after_ms=retry_after,
                status=None,
            )

    async def _admit_async(self) -> None:
        self._admit()

    async def _with_retry(self, operation: Callable[[], Awaitable[_T]]) -> _T:
        async def _attempt() -> _T:
            self._admit()
            return await operation()

        return await self._retry_handler.execute(
            _attempt, error_classifier=classify_provider_error
        )
