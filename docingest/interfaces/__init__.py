"""Interfaces for every external collaborator of the ingestion pipeline.

The document processor only talks to these abstract classes; concrete
adapters live in ``docingest/providers/`` and are injected by
:func:`docingest.main.build_document_processor`
(or by tests, which inject fakes).

    Interface            ->  Concrete implementations
    ----------------------------------------------------------------
    IEmbeddingProvider   ->  OpenAICompatibleProvider, GeminiProvider
    IOCRProvider         ->  TesseractOCRProvider
    IStructuredStore     ->  SQLiteStructuredStore
    IFileStore           ->  LocalFileStore
"""

from __future__ import annotations

from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.interfaces.file_store import FileReference, IFileStore
from docingest.interfaces.ocr_provider import IOCRProvider
from docingest.interfaces.structured_store import Filter, IStructuredStore, OrderBy

__all__ = [
    "FileReference",
    "Filter",
    "IEmbeddingProvider",
    "IFileStore",
    "IOCRProvider",
    "IStructuredStore",
    "OrderBy",
]
