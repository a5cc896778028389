"""Orchestrator for document ingestion and retrieval.

Pipeline stages per document: **received -> extracted -> chunked ->
embedding -> persisted**.

The :class:`DocumentProcessor` coordinates the file store, text extractor,
chunker, embedding provider and structured store without any of them knowing
about each other.  All collaborators are injected via the constructor.

Write policy
------------
Embeddings for a document's full chunk set are computed *before* anything is
written.  Then the document row is inserted, then every chunk row in one
insert.  If the chunk insert fails the document row is deleted again and a
:class:`StorageError` propagates, so a failed ingest never leaves a document
without chunks.  Chunk regeneration on update (delete old chunks, insert new
ones) is not atomic: a failure between the two steps leaves the document
chunkless until it is updated again.

Embedding batches
-----------------
Chunks are embedded ``embedding_batch_size`` at a time.  Calls within a
batch run concurrently, bounded by the provider's
``max_concurrent_requests`` through one semaphore shared by every document
this processor handles.  Batches run sequentially with
``embedding_batch_delay_ms`` between them, and the optional cancellation
event is checked before each batch starts.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

import numpy as np
import structlog

from docingest.interfaces.embedding_provider import IEmbeddingProvider
from docingest.interfaces.file_store import FileReference, IFileStore
from docingest.interfaces.structured_store import Filter, IStructuredStore, OrderBy, like_escape
from docingest.models.document import Chunk, ChunkMatch, Document, DocumentPatch, Scope
from docingest.models.processing import (
    BatchDocument,
    BatchItemResult,
    ProcessingProgress,
    ProcessingStage,
    ProcessingStatus,
)
from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.text_extractor import TextExtractor
from docingest.utils.concurrency import first_exception, throttled_gather
from docingest.utils.errors import (
    AbortedError,
    ConfigurationError,
    DocIngestError,
    DocumentNotFoundError,
    EmptyDocumentError,
    StorageError,
)
from docingest.utils.retry import RetryConfig, RetryHandler

logger = structlog.get_logger(logger_name=__name__)

DOCUMENTS_TABLE = "documents"
CHUNKS_TABLE = "document_chunks"

ProgressCallback = Callable[[ProcessingProgress], None]


def _utcnow_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()


def _content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _visibility_groups(scope: Scope) -> list[list[Filter]]:
    """Filter groups (ORed) selecting rows visible to *scope*.

    Own rows, plus non-private rows of the same team or department.
    """
    groups = [[Filter(column="user_id", value=scope.user_id)]]
    if scope.team_id:
        groups.append(
            [
                Filter(column="team_id", value=scope.team_id),
                Filter(column="is_private", value=False),
            ]
        )
    if scope.department:
        groups.append(
            [
                Filter(column="department", value=scope.department),
                Filter(column="is_private", value=False),
            ]
        )
    return groups


class DocumentProcessor:
    """Ingests documents and searches their chunks.

    Parameters
    ----------
    structured_store:
        Row store for the ``documents`` and ``document_chunks`` tables.
    embedding_provider:
        Provider used for chunk and query embeddings.
    file_store:
        Blob store for :meth:`process_file`; optional for text-only use.
    text_extractor:
        Extractor for :meth:`process_file`.
    chunker:
        Shared chunker (default chunk size 1000).
    embedding_batch_size:
        Chunks embedded per batch.
    embedding_batch_delay_ms:
        Pause between embedding batches.
    batch_concurrency:
        Documents processed side by side by :meth:`process_batch`.
    batch_delay_ms:
        Pause between document slices in :meth:`process_batch`.
    batch_retry_handler:
        Retries a whole document in :meth:`process_batch` when it fails on
        rate limiting (default: 3 attempts, 1 s apart).
    max_stored_content_chars:
        Stored ``documents.content`` is truncated to this length; chunks
        always cover the full text.
    sleep:
        Coroutine function used for delays (seconds); injectable for tests.
    """

    def __init__(
        self,
        structured_store: IStructuredStore,
        embedding_provider: IEmbeddingProvider,
        file_store: IFileStore | None = None,
        text_extractor: TextExtractor | None = None,
        chunker: TextChunker | None = None,
        *,
        embedding_batch_size: int = 5,
        embedding_batch_delay_ms: int = 1000,
        batch_concurrency: int = 2,
        batch_delay_ms: int = 2000,
        batch_retry_handler: RetryHandler | None = None,
        max_stored_content_chars: int = 100_000,
        search_threshold: float = 0.7,
        search_limit: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if embedding_batch_size < 1:
            raise ValueError("embedding_batch_size must be at least 1")
        if batch_concurrency < 1:
            raise ValueError("batch_concurrency must be at least 1")
        self._store = structured_store
        self._provider = embedding_provider
        self._file_store = file_store
        self._extractor = text_extractor or TextExtractor()
        self._chunker = chunker or TextChunker()
        self._embedding_batch_size = embedding_batch_size
        self._embedding_batch_delay_ms = embedding_batch_delay_ms
        self._batch_concurrency = batch_concurrency
        self._batch_delay_ms = batch_delay_ms
        self._batch_retry = batch_retry_handler or RetryHandler(
            RetryConfig(
                max_retries=2,
                initial_delay=1000,
                max_delay=1000,
                backoff_factor=1,
                jitter_factor=0,
            ),
            sleep=sleep,
        )
        self._max_stored_content_chars = max_stored_content_chars
        self._search_threshold = search_threshold
        self._search_limit = search_limit
        self._sleep = sleep
        self._embed_slots = asyncio.Semaphore(embedding_provider.max_concurrent_requests)
        self._progress = ProcessingProgress()

    @property
    def progress(self) -> ProcessingProgress:
        """Latest batch progress snapshot."""
        return self._progress

    @property
    def file_store(self) -> IFileStore | None:
        return self._file_store

    # ==================================================================
    # Ingestion
    # ==================================================================

    async def process_document(
        self,
        title: str,
        content: str,
        metadata: dict[str, Any] | None,
        scope: Scope,
        *,
        is_private: bool = False,
        cancel_event: asyncio.Event | None = None,
    ) -> Document:
        """Chunk, embed and persist *content* as a new document.

        Returns
        -------
        Document
            The stored document; ``metadata["chunk_count"]`` holds the
            number of chunks written.

        Raises
        ------
        EmptyDocumentError
            If *content* is empty or whitespace only.
        AbortedError
            If *cancel_event* is set before an embedding batch starts.
        StorageError
            If persisting fails (nothing is left behind).
        """
        start = time.monotonic()
        document = Document(
            title=title,
            content=content[: self._max_stored_content_chars],
            user_id=scope.user_id,
            team_id=scope.team_id,
            department=scope.department,
            is_private=is_private,
            metadata=dict(metadata or {}),
        )
        self._log_stage(ProcessingStage.RECEIVED, document, characters=len(content))

        pieces = self._chunker.chunk(content)
        self._log_stage(ProcessingStage.CHUNKED, document, chunks=len(pieces))

        self._log_stage(ProcessingStage.EMBEDDING, document, chunks=len(pieces))
        embeddings = await self._embed_texts(pieces, cancel_event)

        document = document.model_copy(
            update={
                "metadata": {
                    **document.metadata,
                    "chunk_count": len(pieces),
                    "content_hash": _content_hash(content),
                }
            }
        )
        chunks = self._build_chunks(document, pieces, embeddings)
        await self._persist(document, chunks)

        self._log_stage(
            ProcessingStage.PERSISTED,
            document,
            chunks=len(chunks),
            elapsed_s=round(time.monotonic() - start, 3),
        )
        return document

    async def process_file(
        self,
        file_ref: FileReference,
        metadata: dict[str, Any] | None,
        scope: Scope,
        *,
        is_private: bool = False,
        title: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> Document:
        """Download, extract and ingest a stored file.

        Raises
        ------
        ExtractionError
            If the file is too large, unsupported or corrupt.
        EmptyDocumentError
            If the file yields no text.
        """
        if self._file_store is None:
            raise ConfigurationError("process_file requires a file store")

        data = await self._file_store.download(file_ref.path)
        self._extractor.validate_upload(file_ref.filename, file_ref.mime_type, len(data))
        result = await self._extractor.extract(data, file_ref.filename, file_ref.mime_type)
        logger.info(
            "document_stage",
            stage=ProcessingStage.EXTRACTED.value,
            filename=file_ref.filename,
            kind=result.kind.value,
            status=result.status.value,
            characters=len(result.text),
        )
        if not result.has_text:
            raise EmptyDocumentError(f"No extractable text in {file_ref.filename}")

        file_metadata: dict[str, Any] = {
            **file_ref.metadata,
            "file_name": file_ref.filename,
            "file_path": file_ref.path,
            "file_size": len(data),
            "mime_type": file_ref.mime_type,
            "kind": result.kind.value,
        }
        if result.page_count is not None:
            file_metadata["page_count"] = result.page_count
        if result.ocr_confidence is not None:
            file_metadata["ocr_confidence"] = result.ocr_confidence

        return await self.process_document(
            title or Path(file_ref.filename).stem or file_ref.filename,
            result.text,
            {**file_metadata, **(metadata or {})},
            scope,
            is_private=is_private,
            cancel_event=cancel_event,
        )

    async def process_batch(
        self,
        documents: list[BatchDocument],
        scope: Scope,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> list[BatchItemResult]:
        """Process *documents* ``batch_concurrency`` at a time.

        A failing document does not stop the batch; its
        :class:`BatchItemResult` carries the error message.  Documents that
        fail on rate limiting are retried by the batch retry policy first.

        Raises
        ------
        AbortedError
            If *cancel_event* is set.  Documents already in flight finish
            (or abort at their next embedding batch) before this is raised.
        """
        self._progress = ProcessingProgress(
            total_documents=len(documents),
            status=ProcessingStatus.PROCESSING,
        )
        self._publish(on_progress)
        results: list[BatchItemResult] = []

        try:
            step = self._batch_concurrency
            for start in range(0, len(documents), step):
                if cancel_event is not None and cancel_event.is_set():
                    raise AbortedError("Processing aborted by user")

                batch = documents[start : start + step]
                outcomes = await asyncio.gather(
                    *(
                        self._process_batch_item(doc, scope, cancel_event, on_progress)
                        for doc in batch
                    ),
                    return_exceptions=True,
                )
                aborted = next((o for o in outcomes if isinstance(o, AbortedError)), None)
                if aborted is not None:
                    raise aborted
                unexpected = first_exception(outcomes)
                if unexpected is not None:
                    raise unexpected
                results.extend(outcomes)  # type: ignore[arg-type]

                if start + step < len(documents):
                    await self._sleep(self._batch_delay_ms / 1000)
        except AbortedError as exc:
            self._progress = self._progress.model_copy(
                update={"status": ProcessingStatus.ABORTED, "error": exc.message}
            )
            self._publish(on_progress)
            logger.info("batch_aborted", processed=self._progress.processed_documents)
            raise
        except Exception as exc:
            self._progress = self._progress.model_copy(
                update={"status": ProcessingStatus.ERROR, "error": str(exc)}
            )
            self._publish(on_progress)
            raise

        self._progress = self._progress.model_copy(update={"status": ProcessingStatus.COMPLETED})
        self._publish(on_progress)
        logger.info(
            "batch_complete",
            documents=len(documents),
            succeeded=sum(1 for r in results if r.success),
            chunks=self._progress.processed_chunks,
        )
        return results

    # ==================================================================
    # Read / update / delete
    # ==================================================================

    async def get_document(self, document_id: str) -> Document | None:
        rows = await self._store.select(
            DOCUMENTS_TABLE, [Filter(column="id", value=document_id)], limit=1
        )
        return Document.model_validate(rows[0]) if rows else None

    async def list_documents(self, scope: Scope, *, owned_only: bool = False) -> list[Document]:
        """Documents visible to *scope*, newest first.

        With *owned_only*, only the caller's own documents.
        """
        any_of = (
            [[Filter(column="user_id", value=scope.user_id)]]
            if owned_only
            else _visibility_groups(scope)
        )
        rows = await self._store.select(
            DOCUMENTS_TABLE,
            order_by=[OrderBy(column="created_at", descending=True)],
            any_of=any_of,
        )
        return [Document.model_validate(r) for r in rows]

    async def get_chunks(self, document_id: str) -> list[Chunk]:
        """Chunks of *document_id* in index order."""
        rows = await self._store.select(
            CHUNKS_TABLE,
            [Filter(column="document_id", value=document_id)],
            order_by=[OrderBy(column="chunk_index")],
        )
        return [Chunk.model_validate(r) for r in rows]

    async def update_document(self, document_id: str, patch: DocumentPatch) -> Document:
        """Apply *patch*; new content regenerates the document's chunks.

        Raises
        ------
        DocumentNotFoundError
            If *document_id* does not exist.
        """
        existing = await self.get_document(document_id)
        if existing is None:
            raise DocumentNotFoundError(document_id)

        values: dict[str, Any] = {}
        for field in ("title", "is_private", "team_id", "department"):
            new_value = getattr(patch, field)
            if new_value is not None and new_value != getattr(existing, field):
                values[field] = new_value
        metadata = {**existing.metadata, **(patch.metadata or {})}

        updated = existing.model_copy(update={**values, "metadata": metadata})
        id_filter = [Filter(column="document_id", value=document_id)]

        # Stored content may be truncated; compare full texts by hash.
        stored_hash = existing.metadata.get("content_hash") or _content_hash(existing.content)
        if patch.content is not None and _content_hash(patch.content) != stored_hash:
            pieces = self._chunker.chunk(patch.content)
            embeddings = await self._embed_texts(pieces, None)
            metadata["chunk_count"] = len(pieces)
            metadata["content_hash"] = _content_hash(patch.content)
            values["content"] = patch.content[: self._max_stored_content_chars]
            updated = updated.model_copy(update={"metadata": metadata})

            await self._store.delete(CHUNKS_TABLE, id_filter)
            chunks = self._build_chunks(updated, pieces, embeddings)
            try:
                await self._store.insert(
                    CHUNKS_TABLE, [c.model_dump(mode="json") for c in chunks]
                )
            except Exception as exc:
                logger.error(
                    "chunk_regeneration_failed",
                    document_id=document_id,
                    error=str(exc),
                )
                if isinstance(exc, StorageError):
                    raise
                raise StorageError(
                    f"Failed to store regenerated chunks for {document_id}: {exc}"
                ) from exc
            logger.info("chunks_regenerated", document_id=document_id, chunks=len(chunks))
        else:
            scope_values = {
                k: values[k] for k in ("is_private", "team_id", "department") if k in values
            }
            if scope_values:
                await self._store.update(CHUNKS_TABLE, scope_values, id_filter)

        values["metadata"] = metadata
        values["updated_at"] = _utcnow_iso()
        await self._store.update(
            DOCUMENTS_TABLE, values, [Filter(column="id", value=document_id)]
        )
        logger.info("document_updated", document_id=document_id, fields=sorted(values))

        refreshed = await self.get_document(document_id)
        if refreshed is None:
            raise DocumentNotFoundError(document_id)
        return refreshed

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document, its chunks and its stored file.

        Returns ``False`` when the document does not exist.
        """
        existing = await self.get_document(document_id)
        if existing is None:
            return False

        await self._store.delete(CHUNKS_TABLE, [Filter(column="document_id", value=document_id)])
        await self._store.delete(DOCUMENTS_TABLE, [Filter(column="id", value=document_id)])

        file_path = existing.metadata.get("file_path")
        if file_path and self._file_store is not None:
            await self._file_store.remove(file_path)

        logger.info("document_deleted", document_id=document_id, file_path=file_path)
        return True

    # ==================================================================
    # Search
    # ==================================================================

    async def search_similar_documents(
        self,
        query: str,
        scope: Scope,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ChunkMatch]:
        """Vector search over chunks visible to *scope*.

        Returns chunks with cosine similarity >= *threshold*, best first,
        at most *limit* of them.  An empty list means no match.
        """
        if not query.strip():
            return []
        threshold = self._search_threshold if threshold is None else threshold
        limit = self._search_limit if limit is None else limit

        query_vector = np.asarray(await self._embed_one(query), dtype=np.float64)
        rows = await self._store.select(CHUNKS_TABLE, any_of=_visibility_groups(scope))
        candidates = [
            r for r in rows
            if r.get("embedding") and len(r["embedding"]) == query_vector.shape[0]
        ]
        if not candidates:
            logger.info("vector_search_no_candidates", user_id=scope.user_id)
            return []

        matrix = np.asarray([r["embedding"] for r in candidates], dtype=np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ query_vector / norms, 0.0)

        order = np.argsort(-scores, kind="stable")
        picked = [(candidates[i], float(scores[i])) for i in order if scores[i] >= threshold]
        picked = picked[:limit]

        matches = await self._to_matches(picked, "vector")
        logger.info(
            "vector_search_complete",
            candidates=len(candidates),
            matches=len(matches),
            threshold=threshold,
        )
        return matches

    async def search_text(
        self,
        query: str,
        scope: Scope,
        threshold: float = 0.0,
        limit: int | None = None,
    ) -> list[ChunkMatch]:
        """Case-insensitive term search over chunks visible to *scope*.

        Score is the fraction of distinct query terms the chunk contains;
        ties are broken by total term occurrences.
        """
        limit = self._search_limit if limit is None else limit
        terms = list(dict.fromkeys(t.lower() for t in query.split()))
        if not terms:
            return []

        visibility = _visibility_groups(scope)
        rows_by_id: dict[str, dict[str, Any]] = {}
        matched_terms: dict[str, int] = {}
        for term in terms:
            rows = await self._store.select(
                CHUNKS_TABLE,
                [Filter(column="content", op="ilike", value=f"%{like_escape(term)}%")],
                any_of=visibility,
            )
            for row in rows:
                rows_by_id[row["id"]] = row
                matched_terms[row["id"]] = matched_terms.get(row["id"], 0) + 1

        ranked: list[tuple[dict[str, Any], float, int]] = []
        for chunk_id, row in rows_by_id.items():
            score = matched_terms[chunk_id] / len(terms)
            if score < threshold:
                continue
            lowered = row["content"].lower()
            occurrences = sum(lowered.count(t) for t in terms)
            ranked.append((row, score, occurrences))
        ranked.sort(key=lambda item: (item[1], item[2]), reverse=True)

        matches = await self._to_matches([(r, s) for r, s, _ in ranked[:limit]], "text")
        logger.info("text_search_complete", terms=len(terms), matches=len(matches))
        return matches

    async def search_documents(
        self,
        query: str,
        scope: Scope,
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[ChunkMatch]:
        """Vector search, falling back to text search.

        The fallback runs when vector search finds nothing or the embedding
        provider fails.  Storage errors are not masked.  A blank query
        matches nothing.
        """
        if not query.strip():
            return []
        try:
            matches = await self.search_similar_documents(query, scope, threshold, limit)
        except StorageError:
            raise
        except DocIngestError as exc:
            logger.warning("vector_search_failed_falling_back", error=str(exc))
            matches = []
        if matches:
            return matches
        return await self.search_text(query, scope, limit=limit)

    # ==================================================================
    # Internals
    # ==================================================================

    async def _embed_one(self, text: str) -> list[float]:
        async with self._embed_slots:
            result = await self._provider.generate_embedding(text)
        return result.embedding

    async def _embed_texts(
        self,
        texts: list[str],
        cancel_event: asyncio.Event | None,
    ) -> list[list[float]]:
        """Embed *texts* in sequential batches; return vectors in input order."""
        vectors: list[list[float]] = []
        size = self._embedding_batch_size

        for start in range(0, len(texts), size):
            if start > 0 and self._embedding_batch_delay_ms > 0:
                await self._sleep(self._embedding_batch_delay_ms / 1000)
            if cancel_event is not None and cancel_event.is_set():
                logger.info("embedding_aborted", embedded=len(vectors), total=len(texts))
                raise AbortedError("Processing aborted by user")

            batch = texts[start : start + size]
            results = await throttled_gather(
                [self._provider.generate_embedding(t) for t in batch],
                semaphore=self._embed_slots,
            )
            error = first_exception(results)
            if error is not None:
                logger.error(
                    "embedding_batch_failed",
                    batch_start=start,
                    batch_size=len(batch),
                    error=str(error),
                )
                raise error
            vectors.extend(r.embedding for r in results)  # type: ignore[union-attr]

        return vectors

    @staticmethod
    def _build_chunks(
        document: Document,
        pieces: list[str],
        embeddings: list[list[float]],
    ) -> list[Chunk]:
        total = len(pieces)
        return [
            Chunk(
                document_id=document.id,
                chunk_index=index,
                content=piece,
                embedding=embedding,
                metadata={
                    "chunk_index": index,
                    "total_chunks": total,
                    "times_accessed": 0,
                    "last_accessed": None,
                },
                user_id=document.user_id,
                team_id=document.team_id,
                department=document.department,
                is_private=document.is_private,
            )
            for index, (piece, embedding) in enumerate(zip(pieces, embeddings))
        ]

    async def _persist(self, document: Document, chunks: list[Chunk]) -> None:
        """Write the document row, then its chunk rows; undo the first on failure."""
        await self._store.insert(DOCUMENTS_TABLE, [document.model_dump(mode="json")])
        try:
            await self._store.insert(CHUNKS_TABLE, [c.model_dump(mode="json") for c in chunks])
        except Exception as exc:
            logger.error(
                "chunk_insert_failed",
                document_id=document.id,
                chunks=len(chunks),
                error=str(exc),
            )
            try:
                await self._store.delete(DOCUMENTS_TABLE, [Filter(column="id", value=document.id)])
            except Exception as rollback_exc:
                logger.error(
                    "document_rollback_failed",
                    document_id=document.id,
                    error=str(rollback_exc),
                )
            raise StorageError(
                f"Failed to store chunks for document {document.id}: {exc}"
            ) from exc

    async def _to_matches(
        self,
        picked: list[tuple[dict[str, Any], float]],
        method: str,
    ) -> list[ChunkMatch]:
        if not picked:
            return []
        document_ids = list({row["document_id"] for row, _ in picked})
        documents = await self._store.select(
            DOCUMENTS_TABLE, [Filter(column="id", op="in", value=document_ids)]
        )
        titles = {d["id"]: d["title"] for d in documents}

        matches: list[ChunkMatch] = []
        for row, score in picked:
            chunk = await self._record_access(Chunk.model_validate(row))
            matches.append(
                ChunkMatch(
                    chunk=chunk,
                    score=score,
                    method=method,
                    document_title=titles.get(row["document_id"], ""),
                )
            )
        return matches

    async def _record_access(self, chunk: Chunk) -> Chunk:
        """Bump the chunk's access counters; failures are logged, not raised."""
        metadata = {
            **chunk.metadata,
            "times_accessed": int(chunk.metadata.get("times_accessed") or 0) + 1,
            "last_accessed": _utcnow_iso(),
        }
        try:
            await self._store.update(
                CHUNKS_TABLE, {"metadata": metadata}, [Filter(column="id", value=chunk.id)]
            )
        except Exception as exc:
            logger.warning("chunk_access_update_failed", chunk_id=chunk.id, error=str(exc))
            return chunk
        return chunk.model_copy(update={"metadata": metadata})

    async def _process_batch_item(
        self,
        item: BatchDocument,
        scope: Scope,
        cancel_event: asyncio.Event | None,
        on_progress: ProgressCallback | None,
    ) -> BatchItemResult:
        try:
            document = await self._batch_retry.execute(
                lambda: self.process_document(
                    item.title,
                    item.content,
                    item.metadata,
                    scope,
                    is_private=item.is_private,
                    cancel_event=cancel_event,
                )
            )
        except AbortedError:
            raise
        except Exception as exc:
            logger.warning("batch_item_failed", title=item.title, error=str(exc))
            self._progress = self._progress.model_copy(
                update={"processed_documents": self._progress.processed_documents + 1}
            )
            self._publish(on_progress)
            return BatchItemResult(title=item.title, success=False, error=str(exc))

        chunk_count = int(document.metadata.get("chunk_count", 0))
        p = self._progress
        self._progress = p.model_copy(
            update={
                "processed_documents": p.processed_documents + 1,
                "total_chunks": p.total_chunks + chunk_count,
                "processed_chunks": p.processed_chunks + chunk_count,
            }
        )
        self._publish(on_progress)
        return BatchItemResult(
            title=item.title,
            success=True,
            document_id=document.id,
            chunk_count=chunk_count,
        )

    def _publish(self, on_progress: ProgressCallback | None) -> None:
        if on_progress is not None:
            on_progress(self._progress)

    @staticmethod
    def _log_stage(stage: ProcessingStage, document: Document, **context: Any) -> None:
        logger.info(
            "document_stage",
            stage=stage.value,
            document_id=document.id,
            title=document.title,
            **context,
        )
