"""Text extraction from uploaded files.

Turns raw bytes plus a file name and/or MIME type into plain text:

    PDF            -> PyMuPDF (fitz), page by page
    DOCX           -> python-docx paragraph text (formatting stripped)
    DOC (legacy)   -> LibreOffice CLI (headless) conversion to text
    TXT / MD / JSON-> UTF-8 decode, verbatim
    Images         -> no text, unless an OCR provider is configured

The MIME type wins over the file extension when both are known.  "No text"
is a normal outcome (:attr:`ExtractionStatus.NO_TEXT`), not an exception;
only files that claim a supported type but fail to parse raise
:class:`ExtractionError`.

Parsers are blocking, so they run in a worker thread and :meth:`extract`
stays a suspension point for the event loop.
"""

from __future__ import annotations

import asyncio
import io
import shutil
import tempfile
from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog
from docx import Document as DocxDocument

from docingest.interfaces.ocr_provider import IOCRProvider
from docingest.models.extraction import DocumentKind, ExtractionResult, ExtractionStatus
from docingest.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
_DOC_MIME = "application/msword"

_MIME_KINDS: dict[str, DocumentKind] = {
    "application/pdf": DocumentKind.PDF,
    _DOCX_MIME: DocumentKind.WORD,
    _DOC_MIME: DocumentKind.WORD,
    "text/plain": DocumentKind.TEXT,
    "text/markdown": DocumentKind.MARKDOWN,
    "text/x-markdown": DocumentKind.MARKDOWN,
    "application/json": DocumentKind.JSON,
}

_EXTENSION_KINDS: dict[str, DocumentKind] = {
    ".pdf": DocumentKind.PDF,
    ".docx": DocumentKind.WORD,
    ".doc": DocumentKind.WORD,
    ".txt": DocumentKind.TEXT,
    ".md": DocumentKind.MARKDOWN,
    ".markdown": DocumentKind.MARKDOWN,
    ".json": DocumentKind.JSON,
    ".png": DocumentKind.IMAGE,
    ".jpg": DocumentKind.IMAGE,
    ".jpeg": DocumentKind.IMAGE,
    ".gif": DocumentKind.IMAGE,
    ".bmp": DocumentKind.IMAGE,
    ".tif": DocumentKind.IMAGE,
    ".tiff": DocumentKind.IMAGE,
    ".webp": DocumentKind.IMAGE,
}


def detect_kind(filename: str | None = None, mime_type: str | None = None) -> DocumentKind:
    """Classify a file by MIME type first, then by file extension."""
    if mime_type:
        mime = mime_type.split(";", 1)[0].strip().lower()
        if mime in _MIME_KINDS:
            return _MIME_KINDS[mime]
        if mime.startswith("image/"):
            return DocumentKind.IMAGE
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix in _EXTENSION_KINDS:
            return _EXTENSION_KINDS[suffix]
    return DocumentKind.UNSUPPORTED


def _is_legacy_word(filename: str | None, mime_type: str | None) -> bool:
    if mime_type:
        mime = mime_type.split(";", 1)[0].strip().lower()
        if mime == _DOCX_MIME:
            return False
        if mime == _DOC_MIME:
            return True
    return bool(filename) and Path(filename).suffix.lower() == ".doc"


class TextExtractor:
    """Extracts plain text from uploaded files.

    Parameters
    ----------
    ocr_provider:
        Optional OCR engine.  Without one, images yield ``NO_TEXT``.
    ocr_min_confidence:
        OCR output below this mean word confidence is discarded.
    max_upload_bytes:
        Size limit enforced by :meth:`validate_upload`.
    """

    def __init__(
        self,
        ocr_provider: IOCRProvider | None = None,
        ocr_min_confidence: float = 0.6,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ) -> None:
        self._ocr_provider = ocr_provider
        self._ocr_min_confidence = ocr_min_confidence
        self._max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Upload validation
    # ------------------------------------------------------------------

    def validate_upload(
        self,
        filename: str,
        mime_type: str | None,
        size: int,
    ) -> DocumentKind:
        """Reject uploads that are too large or of an unsupported kind.

        Returns the detected kind on success.

        Raises
        ------
        ExtractionError
            If *size* exceeds ``max_upload_bytes`` or the type is unsupported.
        """
        kind = detect_kind(filename, mime_type)
        if size > self._max_upload_bytes:
            limit_mb = self._max_upload_bytes / (1024 * 1024)
            raise ExtractionError(
                f"File too large: {size} bytes (limit {limit_mb:g} MB)",
                filename=filename,
                kind=kind.value,
            )
        if kind == DocumentKind.UNSUPPORTED:
            raise ExtractionError(
                f"Unsupported file type: {mime_type or Path(filename).suffix or 'unknown'}",
                filename=filename,
                kind=kind.value,
            )
        return kind

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def extract(
        self,
        data: bytes,
        filename: str | None = None,
        mime_type: str | None = None,
    ) -> ExtractionResult:
        """Extract text from *data*.

        Parameters
        ----------
        data:
            Raw file bytes.
        filename:
            Original file name; used for the extension fallback and errors.
        mime_type:
            Declared MIME type, if known.

        Returns
        -------
        ExtractionResult
            ``EXTRACTED`` with the text, or ``NO_TEXT`` for unsupported
            types, images without usable OCR output and files whose text
            layer is empty.

        Raises
        ------
        ExtractionError
            If a supported file cannot be parsed.  The parser's exception is
            chained as ``__cause__``.
        """
        kind = detect_kind(filename, mime_type)

        if kind == DocumentKind.UNSUPPORTED:
            logger.info("extraction_unsupported_type", filename=filename, mime_type=mime_type)
            return ExtractionResult(status=ExtractionStatus.NO_TEXT, kind=kind)

        if kind == DocumentKind.IMAGE:
            return await self._extract_image(data, filename)

        page_count: int | None = None
        try:
            if kind == DocumentKind.PDF:
                text, page_count = await asyncio.to_thread(self._extract_pdf, data)
            elif kind == DocumentKind.WORD:
                if _is_legacy_word(filename, mime_type):
                    text = await self._extract_legacy_doc(data, filename)
                else:
                    text = await asyncio.to_thread(self._extract_docx, data)
            else:
                text = self._decode_text(data)
        except ExtractionError:
            raise
        except Exception as exc:
            logger.warning(
                "extraction_failed",
                filename=filename,
                kind=kind.value,
                error=str(exc),
            )
            raise ExtractionError(
                f"Failed to extract text from {kind.value} file: {exc}",
                filename=filename,
                kind=kind.value,
            ) from exc

        status = ExtractionStatus.EXTRACTED if text.strip() else ExtractionStatus.NO_TEXT
        logger.info(
            "text_extracted",
            filename=filename,
            kind=kind.value,
            characters=len(text),
            page_count=page_count,
            status=status.value,
        )
        return ExtractionResult(status=status, text=text, kind=kind, page_count=page_count)

    # ------------------------------------------------------------------
    # Per-format readers
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_pdf(data: bytes) -> tuple[str, int]:
        """Return ``(text, page_count)``; pages are separated by blank lines."""
        with fitz.open(stream=data, filetype="pdf") as doc:
            pages = [page.get_text("text").strip() for page in doc]
            page_count = doc.page_count
        return "\n\n".join(p for p in pages if p), page_count

    @staticmethod
    def _extract_docx(data: bytes) -> str:
        doc = DocxDocument(io.BytesIO(data))
        return "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())

    @staticmethod
    def _decode_text(data: bytes) -> str:
        # utf-8-sig strips a leading BOM if present.
        return data.decode("utf-8-sig")

    async def _extract_legacy_doc(self, data: bytes, filename: str | None) -> str:
        """Convert a legacy .doc file to text with headless LibreOffice."""
        lo_cmd = shutil.which("libreoffice") or shutil.which("soffice")
        if not lo_cmd:
            raise ExtractionError(
                "LibreOffice not installed; legacy .doc files cannot be read",
                filename=filename,
                kind=DocumentKind.WORD.value,
            )

        with tempfile.TemporaryDirectory() as work_dir:
            source = Path(work_dir) / "source.doc"
            source.write_bytes(data)
            proc = await asyncio.create_subprocess_exec(
                lo_cmd, "--headless", "--convert-to", "txt:Text",
                "--outdir", work_dir, str(source),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await proc.communicate()

            output = Path(work_dir) / "source.txt"
            if proc.returncode != 0 or not output.exists():
                raise ExtractionError(
                    f"LibreOffice conversion failed: {stderr.decode(errors='replace')[:500]}",
                    filename=filename,
                    kind=DocumentKind.WORD.value,
                )
            text = output.read_text(encoding="utf-8-sig", errors="replace")

        logger.info("doc_converted", filename=filename, characters=len(text))
        return text

    async def _extract_image(self, data: bytes, filename: str | None) -> ExtractionResult:
        if self._ocr_provider is None:
            return ExtractionResult(status=ExtractionStatus.NO_TEXT, kind=DocumentKind.IMAGE)

        # Engine failures propagate as ExtractionError from the provider.
        ocr = await self._ocr_provider.extract_text(data)
        text = ocr.raw_text.strip()
        if not text or ocr.confidence < self._ocr_min_confidence:
            logger.info(
                "ocr_result_rejected",
                filename=filename,
                confidence=round(ocr.confidence, 4),
                min_confidence=self._ocr_min_confidence,
                characters=len(text),
            )
            return ExtractionResult(
                status=ExtractionStatus.NO_TEXT,
                kind=DocumentKind.IMAGE,
                ocr_confidence=ocr.confidence,
            )

        return ExtractionResult(
            status=ExtractionStatus.EXTRACTED,
            text=text,
            kind=DocumentKind.IMAGE,
            ocr_confidence=ocr.confidence,
        )
