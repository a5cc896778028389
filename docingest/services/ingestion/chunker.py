"""Greedy whitespace-respecting text chunking.

Splits extracted text into pieces of at most ``chunk_size`` characters for
embedding.  Words are never split: the text is tokenised on whitespace and
words are accumulated into a buffer, separated by single spaces, until the
next word would push the buffer past the limit.  A word that is longer than
the limit on its own becomes a chunk by itself, untruncated.

Because every run of whitespace collapses to one space, joining the chunks
with single spaces reproduces ``" ".join(text.split())`` exactly.
"""

from __future__ import annotations

import structlog

from docingest.utils.errors import EmptyDocumentError

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into bounded-size chunks on word boundaries.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).  Only a single word
        longer than this may exceed it.
    """

    def __init__(self, chunk_size: int = 1000) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def chunk(self, text: str) -> list[str]:
        """Split *text* into chunks, in order.

        Raises
        ------
        EmptyDocumentError
            If *text* is empty or whitespace only.
        """
        words = text.split()
        if not words:
            raise EmptyDocumentError("Empty document: nothing to chunk")

        chunks: list[str] = []
        buffer = ""
        for word in words:
            candidate = f"{buffer} {word}" if buffer else word
            if buffer and len(candidate) > self._chunk_size:
                chunks.append(buffer)
                buffer = word
            else:
                buffer = candidate
        if buffer:
            chunks.append(buffer)

        logger.debug(
            "text_chunked",
            characters=len(text),
            words=len(words),
            chunks=len(chunks),
            chunk_size=self._chunk_size,
        )
        return chunks
