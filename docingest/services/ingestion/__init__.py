"""Document ingestion and retrieval pipeline.

Orchestrates: **extract -> chunk -> embed -> persist**, and searches the
stored chunks afterwards.

1. **Extract** (text_extractor.py / TextExtractor) -- Validates uploads and
   pulls plain text out of PDF, Word, text, Markdown, JSON and (with OCR
   enabled) image files.  Files without text yield a "no text" result.

2. **Chunk** (chunker.py / TextChunker) -- Greedy word accumulation into
   chunks of at most ``chunk_size`` characters; no overlap.

3. **Embed** (via IEmbeddingProvider) -- Chunks are embedded in small
   sequential batches with a delay between batches; calls inside a batch
   run concurrently up to the provider's concurrency limit.

4. **Persist** (via IStructuredStore) -- Document row first, then all
   chunk rows; a failed chunk write removes the document row again.

The DocumentProcessor class drives all four stages and also provides
update, delete, and vector/text search with access tracking.
"""

from docingest.services.ingestion.chunker import TextChunker
from docingest.services.ingestion.document_processor import DocumentProcessor
from docingest.services.ingestion.text_extractor import TextExtractor, detect_kind

__all__ = [
    "DocumentProcessor",
    "TextChunker",
    "TextExtractor",
    "detect_kind",
]
