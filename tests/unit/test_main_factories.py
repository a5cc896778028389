"""Unit tests for the composition root in docingest.main."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from docingest.config.settings import Settings
from docingest.main import build_document_processor, build_provider_factory
from docingest.models.document import Scope
from docingest.utils.errors import ProviderUnavailableError
from tests.conftest import FakeEmbeddingProvider


def _settings(tmp_path: Path, **overrides) -> Settings:
    defaults = {
        "openai_api_key": "",
        "groq_api_key": "",
        "deepseek_api_key": "",
        "gemini_api_key": "",
        "database_path": str(tmp_path / "db" / "docingest.db"),
        "file_store_root": str(tmp_path / "files"),
        "embedding_batch_delay_ms": 0,
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


class TestBuildDocumentProcessor:
    @pytest.mark.asyncio
    async def test_wires_injected_provider(self, tmp_path: Path) -> None:
        provider = FakeEmbeddingProvider()
        processor = await build_document_processor(
            _settings(tmp_path, chunk_size=50), config={}, provider=provider
        )

        assert (tmp_path / "db" / "docingest.db").exists()
        document = await processor.process_document(
            "Wired", "one two three " * 20, None, Scope(user_id="u1")
        )
        assert document.metadata["chunk_count"] > 1
        assert provider.calls

    @pytest.mark.asyncio
    async def test_no_provider_configured(self, tmp_path: Path) -> None:
        with pytest.raises(ProviderUnavailableError):
            await build_document_processor(_settings(tmp_path), config={})
        with pytest.raises(ProviderUnavailableError):
            await build_document_processor(
                _settings(tmp_path), config={}, probe_providers=False
            )

    @pytest.mark.asyncio
    async def test_ocr_skipped_when_binary_missing(self, tmp_path: Path) -> None:
        with patch(
            "docingest.providers.ocr.tesseract_provider.pytesseract.get_tesseract_version",
            side_effect=OSError("tesseract not installed"),
        ):
            processor = await build_document_processor(
                _settings(tmp_path, ocr_enabled=True),
                config={},
                provider=FakeEmbeddingProvider(),
            )
        assert processor.file_store is not None

    @pytest.mark.asyncio
    async def test_batch_tuning_from_settings(self, tmp_path: Path) -> None:
        processor = await build_document_processor(
            _settings(tmp_path, batch_delay_ms=250, batch_concurrency=3),
            config={},
            provider=FakeEmbeddingProvider(),
        )
        assert processor._batch_delay_ms == 250
        assert processor._batch_concurrency == 3


class TestBuildProviderFactory:
    def test_rate_limits_from_config(self, tmp_path: Path) -> None:
        factory = build_provider_factory(
            _settings(tmp_path, groq_api_key="gsk"),
            {
                "rate_limits": {"groq": {"requests_per_minute": 1, "burst_limit": 1}},
                "retry": {"max_retries": 0},
            },
        )
        assert factory.available_names() == ["groq"]
        assert factory.create("groq").get_provider_name() == "groq"
