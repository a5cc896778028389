"""Text-extraction result models.

Extraction has two normal outcomes: text was found, or the file carries no
extractable text (an image with OCR disabled, an unsupported type).  The
second is a value, not an exception; only corrupt files raise.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DocumentKind(str, Enum):  # noqa: UP042 (StrEnum requires Python 3.11+)
    """File families the extractor knows how to read."""

    PDF = "pdf"
    WORD = "word"
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"


class ExtractionStatus(str, Enum):  # noqa: UP042
    EXTRACTED = "extracted"
    NO_TEXT = "no_text"


class ExtractionResult(BaseModel):
    """Outcome of extracting text from one file."""

    model_config = ConfigDict(frozen=True)

    status: ExtractionStatus
    text: str = ""
    kind: DocumentKind = DocumentKind.UNSUPPORTED
    page_count: int | None = Field(default=None, ge=0, description="PDF pages, when known.")
    ocr_confidence: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Mean word confidence when the text came from OCR.",
    )

    @property
    def has_text(self) -> bool:
        return self.status == ExtractionStatus.EXTRACTED and bool(self.text.strip())


class OCRResult(BaseModel):
    """The result of running OCR on one image."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    # Mean word confidence (0.0-1.0).
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provider_used: str
    processing_time: float = 0.0
