"""Exponential backoff with jitter for calls to external AI providers.

:class:`RetryHandler` runs an async operation and, when it fails with an
error classified as retryable, waits and tries again:

    delay(n) = min(max_delay, initial_delay * backoff_factor ** (n - 1))
               + uniform(0, delay(n) * jitter_factor)

The jitter keeps many workers that were throttled at the same moment from
retrying in lockstep against the same provider.

Classification maps an exception to a string.  Only strings in
:data:`RETRYABLE_ERROR_TYPES` are retried; anything else (``"fatal"``)
propagates on the first failure without consuming a retry.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from docingest.utils.errors import ProviderError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

RATE_LIMIT = "rate_limit"
TIMEOUT = "timeout"
NETWORK_ERROR = "network_error"
SERVER_ERROR = "server_error"
SERVICE_UNAVAILABLE = "service_unavailable"
FATAL = "fatal"

RETRYABLE_ERROR_TYPES = frozenset(
    {RATE_LIMIT, TIMEOUT, NETWORK_ERROR, SERVER_ERROR, SERVICE_UNAVAILABLE}
)

_RATE_LIMIT_MARKERS = ("rate limit", "too many requests", "quota exceeded")
_NETWORK_MARKERS = ("econnreset", "socket hang up", "connection reset", "network")

ErrorClassifier = Callable[[BaseException], str]


class RetryConfig(BaseModel):
    """Backoff policy.  Delays are in milliseconds."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=100, ge=0)
    max_delay: float = Field(default=1000, ge=0)
    backoff_factor: float = Field(default=2, ge=1)
    jitter_factor: float = Field(default=0.1, ge=0)


def classify_error(error: BaseException) -> str:
    """Default classifier: only rate limiting is worth retrying."""
    if isinstance(error, RateLimitError):
        return RATE_LIMIT
    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return RATE_LIMIT
    return FATAL


def classify_provider_error(error: BaseException) -> str:
    """Classifier for AI provider calls.

    On top of rate limiting, treats timeouts, dropped connections and 5xx
    responses as transient.
    """
    if isinstance(error, ProviderError):
        if error.error_type:
            return error.error_type if error.retryable else FATAL
        if error.status == 429:
            return RATE_LIMIT
        if error.status is not None and error.status >= 500:
            return SERVER_ERROR
    if isinstance(error, (asyncio.TimeoutError, httpx.TimeoutException)):
        return TIMEOUT
    if isinstance(error, httpx.TransportError):
        return NETWORK_ERROR

    message = str(error).lower()
    if any(marker in message for marker in _RATE_LIMIT_MARKERS):
        return RATE_LIMIT
    if "timeout" in message or "timed out" in message:
        return TIMEOUT
    if "service unavailable" in message:
        return SERVICE_UNAVAILABLE
    if any(marker in message for marker in _NETWORK_MARKERS):
        return NETWORK_ERROR
    return FATAL


class RetryHandler:
    """Retries an async operation on retryable failures.

    Parameters
    ----------
    config:
        Backoff policy; defaults to :class:`RetryConfig` defaults.
    sleep:
        Coroutine function used to wait between attempts (seconds).
        Tests inject a recorder instead of :func:`asyncio.sleep`.
    rng:
        Source of jitter; a seeded :class:`random.Random` makes delays
        reproducible.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def calculate_delay(self, retry_number: int) -> float:
        """Return the wait in milliseconds before retry *retry_number* (1-based)."""
        base = min(
            self.config.max_delay,
            self.config.initial_delay * self.config.backoff_factor ** (retry_number - 1),
        )
        jitter = base * self.config.jitter_factor * self._rng.random()
        return base + jitter

    async def execute(
        self,
        operation: Callable[[], Awaitable[_T]],
        error_classifier: ErrorClassifier | None = None,
    ) -> _T:
        """Run *operation*, retrying per policy; re-raise the last error on exhaustion.

        Makes at most ``max_retries + 1`` attempts.  A non-retryable error
        is raised after the attempt that produced it.
        """
        classifier = error_classifier or classify_error
        attempt = 0

        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as exc:
                error_type = classifier(exc)
                if error_type not in RETRYABLE_ERROR_TYPES:
                    raise
                if attempt > self.config.max_retries:
                    logger.warning(
                        "retries_exhausted",
                        attempts=attempt,
                        error_type=error_type,
                        error=str(exc),
                    )
                    raise

                delay_ms = self.calculate_delay(attempt)
                logger.info(
                    "retrying_operation",
                    attempt=attempt,
                    max_retries=self.config.max_retries,
                    delay_ms=round(delay_ms, 1),
                    error_type=error_type,
                )
                await self._sleep(delay_ms / 1000)
