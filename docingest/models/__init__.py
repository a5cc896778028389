"""docingest domain models, re-exported for ``from docingest.models import ...``.

Submodules by concern:
    - document.py    : Document, Chunk, ChunkMatch, Scope, DocumentPatch
    - extraction.py  : ExtractionResult, DocumentKind, OCRResult
    - processing.py  : ProcessingProgress, BatchDocument, BatchItemResult
    - provider.py    : ChatMessage, ChatResponse, EmbeddingResult, TokenUsage
"""

from __future__ import annotations

from docingest.models.document import Chunk, ChunkMatch, Document, DocumentPatch, Scope
from docingest.models.extraction import (
    DocumentKind,
    ExtractionResult,
    ExtractionStatus,
    OCRResult,
)
from docingest.models.processing import (
    BatchDocument,
    BatchItemResult,
    ProcessingProgress,
    ProcessingStage,
    ProcessingStatus,
)
from docingest.models.provider import ChatMessage, ChatResponse, EmbeddingResult, TokenUsage

__all__ = [
    "BatchDocument",
    "BatchItemResult",
    "ChatMessage",
    "ChatResponse",
    "Chunk",
    "ChunkMatch",
    "Document",
    "DocumentKind",
    "DocumentPatch",
    "EmbeddingResult",
    "ExtractionResult",
    "ExtractionStatus",
    "OCRResult",
    "ProcessingProgress",
    "ProcessingStage",
    "ProcessingStatus",
    "Scope",
    "TokenUsage",
]
