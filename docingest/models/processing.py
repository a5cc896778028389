"""Processing lifecycle models: per-document stages, batch progress and results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStage(str, Enum):  # noqa: UP042 (StrEnum requires Python 3.11+)
    """Stages a single document passes through, in order.

    RECEIVED -> EXTRACTED -> CHUNKED -> EMBEDDING -> PERSISTED
    """

    RECEIVED = "received"
    EXTRACTED = "extracted"
    CHUNKED = "chunked"
    EMBEDDING = "embedding"
    PERSISTED = "persisted"


class ProcessingStatus(str, Enum):  # noqa: UP042
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ABORTED = "aborted"
    ERROR = "error"


class ProcessingProgress(BaseModel):
    """Snapshot of batch progress, handed to the progress callback.

    Frozen; the processor publishes a new snapshot on every change.
    """

    model_config = ConfigDict(frozen=True)

    total_documents: int = Field(default=0, ge=0)
    processed_documents: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0)
    processed_chunks: int = Field(default=0, ge=0)
    status: ProcessingStatus = ProcessingStatus.PENDING
    error: str | None = None


class BatchDocument(BaseModel):
    """One input to :meth:`DocumentProcessor.process_batch`."""

    model_config = ConfigDict(frozen=True)

    title: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_private: bool = False


class BatchItemResult(BaseModel):
    """Per-document outcome of a batch run."""

    model_config = ConfigDict(frozen=True)

    title: str
    success: bool
    document_id: str | None = None
    chunk_count: int = 0
    error: str | None = None
