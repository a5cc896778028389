"""Unit tests for the Pydantic domain models."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from docingest.models import (
    BatchItemResult,
    Chunk,
    ChunkMatch,
    Document,
    DocumentKind,
    DocumentPatch,
    ExtractionResult,
    ExtractionStatus,
    OCRResult,
    ProcessingProgress,
    ProcessingStatus,
    Scope,
)


# ======================================================================
# Document
# ======================================================================


class TestDocument:
    def test_defaults(self) -> None:
        doc = Document(title="Q3", user_id="u1")
        assert doc.content == ""
        assert doc.is_private is False
        assert doc.metadata == {}
        assert doc.created_at.tzinfo is not None

    def test_ids_unique(self) -> None:
        assert Document(title="a", user_id="u").id != Document(title="a", user_id="u").id

    def test_metadata_not_shared(self) -> None:
        d1 = Document(title="a", user_id="u")
        d2 = Document(title="b", user_id="u")
        assert d1.metadata is not d2.metadata

    def test_scope_property(self) -> None:
        doc = Document(title="a", user_id="u1", team_id="t1", department="sales")
        assert doc.scope == Scope(user_id="u1", team_id="t1", department="sales")

    def test_frozen_immutability(self) -> None:
        doc = Document(title="a", user_id="u1")
        with pytest.raises(ValidationError):
            doc.title = "b"  # type: ignore[misc]

    def test_model_copy_update(self) -> None:
        doc = Document(title="a", user_id="u1")
        copy = doc.model_copy(update={"metadata": {"chunk_count": 3}})
        assert copy.metadata["chunk_count"] == 3
        assert doc.metadata == {}
        assert copy.id == doc.id

    def test_json_round_trip_from_row(self) -> None:
        doc = Document(title="a", user_id="u1", metadata={"kind": "pdf"})
        row = json.loads(doc.model_dump_json())
        assert Document.model_validate(row) == doc


# ======================================================================
# Chunk / ChunkMatch
# ======================================================================


class TestChunk:
    def test_rejects_negative_index(self) -> None:
        with pytest.raises(ValidationError):
            Chunk(document_id="d", chunk_index=-1, content="x", user_id="u")

    def test_embedding_optional(self) -> None:
        chunk = Chunk(document_id="d", chunk_index=0, content="x", user_id="u")
        assert chunk.embedding is None

    def test_match_method_restricted(self) -> None:
        chunk = Chunk(document_id="d", chunk_index=0, content="x", user_id="u")
        assert ChunkMatch(chunk=chunk, score=0.9).method == "vector"
        with pytest.raises(ValidationError):
            ChunkMatch(chunk=chunk, score=0.9, method="fuzzy")  # type: ignore[arg-type]


class TestDocumentPatch:
    def test_all_fields_default_to_none(self) -> None:
        patch = DocumentPatch()
        assert all(value is None for value in patch.model_dump().values())


# ======================================================================
# Extraction
# ======================================================================


class TestExtractionResult:
    def test_has_text(self) -> None:
        result = ExtractionResult(
            status=ExtractionStatus.EXTRACTED, text="hello", kind=DocumentKind.TEXT
        )
        assert result.has_text is True

    def test_whitespace_is_not_text(self) -> None:
        result = ExtractionResult(status=ExtractionStatus.EXTRACTED, text=" \n")
        assert result.has_text is False

    def test_no_text_status(self) -> None:
        result = ExtractionResult(status=ExtractionStatus.NO_TEXT, kind=DocumentKind.IMAGE)
        assert result.has_text is False

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ExtractionResult(status=ExtractionStatus.EXTRACTED, ocr_confidence=1.5)

    def test_kind_values(self) -> None:
        assert DocumentKind("pdf") is DocumentKind.PDF
        assert DocumentKind.WORD.value == "word"


class TestOCRResult:
    def test_confidence_rejects_below_zero(self) -> None:
        with pytest.raises(ValidationError):
            OCRResult(raw_text="x", confidence=-0.1, provider_used="tesseract")


# ======================================================================
# Processing
# ======================================================================


class TestProcessingProgress:
    def test_defaults(self) -> None:
        progress = ProcessingProgress()
        assert progress.status == ProcessingStatus.PENDING
        assert progress.processed_documents == 0
        assert progress.error is None

    def test_rejects_negative_counts(self) -> None:
        with pytest.raises(ValidationError):
            ProcessingProgress(total_documents=-1)

    def test_status_serialises_as_value(self) -> None:
        progress = ProcessingProgress(status=ProcessingStatus.ABORTED)
        assert json.loads(progress.model_dump_json())["status"] == "aborted"


class TestBatchItemResult:
    def test_failure_defaults(self) -> None:
        result = BatchItemResult(title="a", success=False, error="boom")
        assert result.document_id is None
        assert result.chunk_count == 0
