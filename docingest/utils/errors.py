"""Custom exception hierarchy for docingest.

All library exceptions inherit from :class:`DocIngestError`, which carries
an optional ``provider_name`` so error handlers can identify which external
service (e.g. "groq", "gemini", "sqlite") caused the failure.

The hierarchy is organized by pipeline stage:

    DocIngestError  (base -- catch-all for any docingest error)
    +-- ExtractionError           (unsupported or corrupt source file)
    +-- EmptyDocumentError        (chunker received no content)
    +-- ProviderError             (any AI provider call failure)
    |   +-- RateLimitError        (provider rate-limit exceeded; retryable)
    +-- ConcurrencyLimitError     (provider in-flight budget exceeded)
    +-- ProviderUnavailableError  (no healthy provider)
    +-- StorageError              (structured store / file store failure)
    |   +-- DocumentNotFoundError (unknown document id)
    +-- AbortedError              (batch processing cancelled)
    +-- ConfigurationError        (startup / missing config)

Route handlers outside this library turn any of these into a response body
with :func:`error_payload`.
"""

from __future__ import annotations

import traceback
from typing import Any


class DocIngestError(Exception):
    """Base exception for all docingest errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[groq] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction / chunking errors
# ---------------------------------------------------------------------------

class ExtractionError(DocIngestError):
    """Raised when a source file is unsupported for upload or fails to parse.

    ``filename`` and ``kind`` identify the offending file so the caller can
    show which upload was rejected.
    """

    def __init__(
        self,
        message: str = "Text extraction failed",
        filename: str | None = None,
        kind: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self.filename = filename
        self.kind = kind
        super().__init__(message=message, provider_name=provider_name)


class EmptyDocumentError(DocIngestError):
    """Raised when a document has no content to chunk."""

    def __init__(
        self,
        message: str = "Empty document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# AI provider errors
# ---------------------------------------------------------------------------

class ProviderError(DocIngestError):
    """Raised when an AI provider call fails.

    ``status`` is the HTTP status code when one was received, ``error_type``
    the retry classification (``"rate_limit"``, ``"timeout"``,
    ``"server_error"`` ...) and ``retryable`` whether the retry handler
    should try again.
    """

    def __init__(
        self,
        message: str = "AI provider call failed",
        provider_name: str | None = None,
        status: int | None = None,
        error_type: str | None = None,
        retryable: bool = False,
    ) -> None:
        self.status = status
        self.error_type = error_type
        self.retryable = retryable
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(ProviderError):
    """Raised when a provider's rate limit is exceeded (locally or remotely).

    Always retryable.  ``retry_after_ms`` carries the limiter's estimate of
    when the next call will be admitted.
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
        retry_after_ms: int = 0,
        status: int | None = 429,
    ) -> None:
        self.retry_after_ms = retry_after_ms
        super().__init__(
            message=message,
            provider_name=provider_name,
            status=status,
            error_type="rate_limit",
            retryable=True,
        )


class ConcurrencyLimitError(DocIngestError):
    """Raised when a provider already has its maximum number of calls in flight.

    Fails fast instead of queuing; the caller may resubmit later.
    """

    def __init__(
        self,
        message: str = "Too many concurrent requests",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(DocIngestError):
    """Raised when no configured AI provider passes its health check."""

    def __init__(
        self,
        message: str = "No AI provider is available",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / orchestration errors
# ---------------------------------------------------------------------------

class StorageError(DocIngestError):
    """Raised when a structured-store or file-store operation fails."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(StorageError):
    """Raised when an operation targets a document id that does not exist."""

    def __init__(
        self,
        document_id: str,
        provider_name: str | None = None,
    ) -> None:
        self.document_id = document_id
        super().__init__(message=f"Document not found: {document_id}", provider_name=provider_name)


class AbortedError(DocIngestError):
    """Raised when processing is cancelled through its cancellation event.

    Distinct from a failure: callers should not report it as a bug.
    """

    def __init__(
        self,
        message: str = "Processing aborted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocIngestError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


def error_payload(exc: BaseException, app_env: str = "development") -> dict[str, Any]:
    """Render *exc* as a structured error body for an HTTP route handler.

    Production responses omit the traceback; every other environment
    includes it to aid debugging.
    """
    payload: dict[str, Any] = {
        "error": type(exc).__name__,
        "message": exc.message if isinstance(exc, DocIngestError) else str(exc),
        "provider": exc.provider_name if isinstance(exc, DocIngestError) else None,
    }
    if isinstance(exc, ExtractionError):
        payload["filename"] = exc.filename
        payload["kind"] = exc.kind
    if isinstance(exc, RateLimitError):
        payload["retry_after_ms"] = exc.retry_after_ms
    if app_env != "production":
        payload["traceback"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return payload
