"""Document, chunk and search-result models.

A :class:`Document` is one uploaded file (or raw text) after extraction.
Its text is split into :class:`Chunk` rows, each carrying an embedding
vector and a copy of the parent's scope fields so visibility filters can
run against the chunk table alone.

All models use frozen config; changes produce new instances via
``model_copy(update={...})``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Scope: who may see a document.
# ---------------------------------------------------------------------------
class Scope(BaseModel):
    """Ownership and sharing attributes of the caller or of a document.

    A document is visible to its owner, and, unless it is private, to any
    user of the same team or department.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(description="Owning (or requesting) user id.")
    team_id: str | None = Field(default=None, description="Team the user belongs to.")
    department: str | None = Field(default=None, description="Department name.")


# ---------------------------------------------------------------------------
# Document: one ingested source.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """An ingested document.

    ``content`` holds the extracted text (possibly truncated for storage);
    ``metadata`` carries the original file name, size, MIME type, page count
    and ``chunk_count``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="UUID of the document.")
    title: str = Field(description="Display title.")
    content: str = Field(default="", description="Extracted text.")
    user_id: str = Field(description="Owner of the document.")
    team_id: str | None = None
    department: str | None = None
    is_private: bool = Field(
        default=False,
        description="Private documents are visible to their owner only.",
    )
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def scope(self) -> Scope:
        return Scope(user_id=self.user_id, team_id=self.team_id, department=self.department)


# ---------------------------------------------------------------------------
# Chunk: the unit that gets embedded and searched.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A bounded-size slice of a document's text with its embedding.

    Joining the contents of a document's chunks in ``chunk_index`` order
    with single spaces reproduces the document's whitespace-normalised text.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    document_id: str = Field(description="Parent document id.")
    chunk_index: int = Field(ge=0, description="0-based position within the document.")
    content: str
    embedding: list[float] | None = Field(
        default=None,
        description="Embedding vector; fixed dimension per provider.",
    )
    # chunk_index, total_chunks, times_accessed, last_accessed
    metadata: dict[str, Any] = Field(default_factory=dict)
    # Mirrored from the parent document for filtering.
    user_id: str
    team_id: str | None = None
    department: str | None = None
    is_private: bool = False
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# ChunkMatch: a search hit.
# ---------------------------------------------------------------------------
class ChunkMatch(BaseModel):
    """A chunk returned by vector or text search.

    ``score`` is cosine similarity for vector hits and the fraction of query
    terms matched for text hits.
    """

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(description="Relevance score; higher is better.")
    method: Literal["vector", "text"] = "vector"
    document_title: str = ""


# ---------------------------------------------------------------------------
# DocumentPatch: fields accepted by update_document.
# ---------------------------------------------------------------------------
class DocumentPatch(BaseModel):
    """Partial update for a document.  ``None`` fields are left untouched.

    A new ``content`` triggers chunk regeneration.
    """

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    content: str | None = None
    metadata: dict[str, Any] | None = None
    is_private: bool | None = None
    team_id: str | None = None
    department: str | None = None
