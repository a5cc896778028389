"""Composition root: builds a fully wired :class:`DocumentProcessor`.

Route handlers and the CLI call :func:`build_document_processor` once and
keep the result.  Every collaborator is constructed here and injected, so
nothing below this module reads settings or picks implementations itself.
"""

from __future__ import annotations

from typing import Any

import structlog

from docingest.config.loader import load_config
from docingest.config.settings import Settings
from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.providers.embedding.factory import ProviderFactory
from docingest.providers.ocr.tesseract_provider import TesseractOCRProvider
from docingest.providers.store.local_file_store import LocalFileStore
from docingest.providers.store.sqlite_store import SQLiteStructuredStore
from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.document_processor import DocumentProcessor
from docingest.services.ingestion.text_extractor import TextExtractor
from docingest.utils.errors import ProviderUnavailableError
from docingest.utils.image_preprocessor import ImagePreprocessor
from docingest.utils.rate_limiter import RateLimiter
from docingest.utils.retry import RetryConfig, RetryHandler

logger = structlog.get_logger(logger_name=__name__)


def build_provider_factory(
    app_settings: Settings,
    config: dict[str, Any] | None = None,
) -> ProviderFactory:
    """Create the provider factory with limits and retry policy from *config*."""
    config = config if config is not None else load_config(settings=app_settings)
    rate_limiter = RateLimiter.from_config(config.get("rate_limits"))
    retry_handler = RetryHandler(RetryConfig(**(config.get("retry") or {})))
    return ProviderFactory(app_settings, rate_limiter=rate_limiter, retry_handler=retry_handler)


async def build_document_processor(
    custom_settings: Settings | None = None,
    *,
    config: dict[str, Any] | None = None,
    provider: IEmbeddingProvider | None = None,
    probe_providers: bool = True,
) -> DocumentProcessor:
    """Construct every store, provider and service the processor needs.

    Parameters
    ----------
    custom_settings:
        Settings to use instead of reading the environment.
    config:
        Pre-loaded YAML config; read from ``config/config.yaml`` otherwise.
    provider:
        Embedding provider to use instead of asking the factory.
    probe_providers:
        When ``True`` the factory health-checks providers in priority order
        and picks the first healthy one; otherwise the first provider with
        an API key is used unprobed.

    Raises
    ------
    ProviderUnavailableError
        If no embedding provider is configured (or none is healthy).
    """
    app_settings = custom_settings or Settings()
    config = config if config is not None else load_config(settings=app_settings)

    if provider is None:
        factory = build_provider_factory(app_settings, config)
        if probe_providers:
            provider = await factory.get_best_provider()
        else:
            names = factory.available_names()
            if not names:
                raise ProviderUnavailableError("No AI provider has an API key configured")
            provider = factory.create(names[0])

    structured_store = SQLiteStructuredStore(app_settings.database_path)
    await structured_store.initialize()
    file_store = LocalFileStore(app_settings.file_store_root)

    ocr_provider = None
    if app_settings.ocr_enabled:
        ocr_provider = TesseractOCRProvider(
            preprocessor=ImagePreprocessor(),
            language=app_settings.ocr_language,
        )
        if not ocr_provider.is_available():
            logger.warning("ocr_unavailable", provider=ocr_provider.get_provider_name())
            ocr_provider = None

    extractor = TextExtractor(
        ocr_provider=ocr_provider,
        ocr_min_confidence=app_settings.ocr_min_confidence,
        max_upload_bytes=app_settings.max_upload_bytes,
    )

    processor = DocumentProcessor(
        structured_store,
        provider,
        file_store=file_store,
        text_extractor=extractor,
        chunker=TextChunker(app_settings.chunk_size),
        embedding_batch_size=app_settings.embedding_batch_size,
        embedding_batch_delay_ms=app_settings.embedding_batch_delay_ms,
        batch_concurrency=app_settings.batch_concurrency,
        batch_delay_ms=app_settings.batch_delay_ms,
        max_stored_content_chars=app_settings.max_stored_content_chars,
        search_threshold=app_settings.search_threshold,
        search_limit=app_settings.search_limit,
    )
    logger.info(
        "document_processor_built",
        provider=provider.get_provider_name(),
        database=app_settings.database_path,
        ocr=ocr_provider is not None,
    )
    return processor
