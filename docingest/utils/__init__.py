"""Utility modules for docingest.

- **errors** -- Exception hierarchy rooted at DocIngestError, plus
  ``error_payload`` for rendering errors in route handlers.
- **rate_limiter** -- Per-provider token buckets with continuous refill.
- **retry** -- Exponential backoff with jitter and error classification.
- **concurrency** -- Semaphore-bounded ``gather`` used for embedding batches.
- **logging** -- structlog setup: coloured console output in development,
  structured JSON in production.
- **image_preprocessor** (not re-exported here) -- PIL preparation of
  images before OCR.
"""

# -- Exception hierarchy ----------------------------------------------------
from docingest.utils.errors import (
    AbortedError,
    ConcurrencyLimitError,
    ConfigurationError,
    DocIngestError,
    DocumentNotFoundError,
    EmptyDocumentError,
    ExtractionError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    StorageError,
    error_payload,
)

# -- Rate limiting and retries ----------------------------------------------
from docingest.utils.rate_limiter import RateLimitConfig, RateLimiter, get_rate_limiter
from docingest.utils.retry import RetryConfig, RetryHandler

# -- Logging ----------------------------------------------------------------
from docingest.utils.logging import configure_logging, get_logger

__all__ = [
    "AbortedError",
    "ConcurrencyLimitError",
    "ConfigurationError",
    "DocIngestError",
    "DocumentNotFoundError",
    "EmptyDocumentError",
    "ExtractionError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitConfig",
    "RateLimitError",
    "RateLimiter",
    "RetryConfig",
    "RetryHandler",
    "StorageError",
    "configure_logging",
    "error_payload",
    "get_logger",
    "get_rate_limiter",
]
