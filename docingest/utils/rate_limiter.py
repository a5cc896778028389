"""Per-provider token-bucket rate limiting for external AI providers.

Each provider name owns a bucket holding up to ``burst_limit`` tokens.
Tokens refill continuously at ``requests_per_minute / 60`` per second and
every admitted call consumes one.  :meth:`RateLimiter.check_limit` never
blocks: it answers "may I call now?" and leaves waiting to the caller
(usually the retry handler, via a :class:`RateLimitError`).

Under asyncio every bucket update happens within one scheduler turn, so the
buckets need no lock.  A preemptively threaded port would need one.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable

import structlog
from pydantic import BaseModel, ConfigDict, Field

from docingest.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_MS_PER_MINUTE = 60_000


class RateLimitConfig(BaseModel):
    """Admission settings for one provider."""

    model_config = ConfigDict(frozen=True)

    requests_per_minute: float = Field(gt=0, description="Steady-state refill rate.")
    burst_limit: int = Field(ge=1, description="Bucket capacity (max tokens).")
    retry_after_ms: int = Field(
        default=1000,
        ge=0,
        description="Suggested base wait when a call is refused.",
    )


# Defaults per provider name; config/config.yaml may override these.
DEFAULT_RATE_LIMITS: dict[str, RateLimitConfig] = {
    "groq": RateLimitConfig(requests_per_minute=100, burst_limit=120, retry_after_ms=1000),
    "deepseek": RateLimitConfig(requests_per_minute=60, burst_limit=70, retry_after_ms=2000),
    "gemini": RateLimitConfig(requests_per_minute=60, burst_limit=70, retry_after_ms=2000),
    "openai": RateLimitConfig(requests_per_minute=500, burst_limit=600, retry_after_ms=1000),
}


@dataclass
class _TokenBucket:
    tokens: float
    last_refill: float


class RateLimiter:
    """Token-bucket admission control keyed by provider name.

    Parameters
    ----------
    clock:
        Callable returning the current time in seconds.  Defaults to
        :func:`time.monotonic`; tests pass a fake to simulate elapsed time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._buckets: dict[str, _TokenBucket] = {}
        self._configs: dict[str, RateLimitConfig] = {}

    @classmethod
    def from_config(
        cls,
        rate_limits: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> RateLimiter:
        """Build a limiter from defaults overlaid with a ``rate_limits`` mapping.

        *rate_limits* is the ``rate_limits`` section of ``config/config.yaml``:
        provider name -> ``{requests_per_minute, burst_limit, retry_after_ms}``.
        """
        limiter = cls(clock=clock)
        merged: dict[str, RateLimitConfig] = dict(DEFAULT_RATE_LIMITS)
        for provider, raw in (rate_limits or {}).items():
            merged[provider] = RateLimitConfig(**raw)
        for provider, config in merged.items():
            limiter.set_config(provider, config)
        return limiter

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_config(self, provider: str, config: RateLimitConfig) -> None:
        """Register *config* for *provider* and start it with a full bucket."""
        self._configs[provider] = config
        self._buckets[provider] = _TokenBucket(
            tokens=float(config.burst_limit),
            last_refill=self._clock(),
        )

    def is_configured(self, provider: str) -> bool:
        return provider in self._configs

    def get_config(self, provider: str) -> RateLimitConfig:
        return self._require_config(provider)

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_limit(self, provider: str) -> bool:
        """Consume one token for *provider* if available.

        Returns ``False`` (without blocking) when the bucket is empty.

        Raises
        ------
        ConfigurationError
            If *provider* has no registered configuration.
        """
        self._require_config(provider)
        bucket = self._refill(provider)

        if bucket.tokens >= 1:
            bucket.tokens -= 1
            return True

        logger.debug(
            "rate_limit_refused",
            provider=provider,
            tokens=round(bucket.tokens, 3),
        )
        return False

    def get_retry_after(self, provider: str) -> int:
        """Return milliseconds until *provider* will admit the next call."""
        config = self._require_config(provider)
        bucket = self._refill(provider)
        if bucket.tokens >= 1:
            return 0
        missing = 1 - bucket.tokens
        return max(1, math.ceil(missing * _MS_PER_MINUTE / config.requests_per_minute))

    def get_tokens(self, provider: str) -> float:
        """Return the current (refilled) token count for *provider*."""
        self._require_config(provider)
        return self._refill(provider).tokens

    def reset(self, provider: str) -> None:
        """Refill *provider*'s bucket so its retry-after time drops to zero."""
        config = self._require_config(provider)
        self._buckets[provider] = _TokenBucket(
            tokens=float(config.burst_limit),
            last_refill=self._clock(),
        )
        logger.info("rate_limit_reset", provider=provider)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_config(self, provider: str) -> RateLimitConfig:
        config = self._configs.get(provider)
        if config is None:
            raise ConfigurationError(
                f"Rate limit not configured for provider: {provider}",
                provider_name=provider,
            )
        return config

    def _refill(self, provider: str) -> _TokenBucket:
        config = self._configs[provider]
        bucket = self._buckets[provider]
        now = self._clock()
        elapsed_ms = max(0.0, (now - bucket.last_refill) * 1000)
        added = elapsed_ms * config.requests_per_minute / _MS_PER_MINUTE
        bucket.tokens = min(float(config.burst_limit), bucket.tokens + added)
        bucket.last_refill = now
        return bucket


_default_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it with defaults on first use."""
    global _default_limiter
    if _default_limiter is None:
        _default_limiter = RateLimiter.from_config()
    return _default_limiter
