"""Tesseract OCR provider for scanned documents and photographed pages.

Wraps pytesseract behind :class:`IOCRProvider`.  Each image is preprocessed
once (downsample, greyscale + autocontrast, sharpen) and read with a single
``image_to_data`` call; the reported confidence is the mean of the word
confidences Tesseract assigns.
"""

from __future__ import annotations

import asyncio
import time

import pytesseract
from PIL import Image

from docingest.interfaces.ocr_provider import IOCRProvider
from docingest.models.extraction import OCRResult
from docingest.utils.errors import ExtractionError
from docingest.utils.image_preprocessor import ImagePreprocessor
from docingest.utils.logging import get_logger


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract."""

    def __init__(
        self,
        preprocessor: ImagePreprocessor | None = None,
        language: str = "eng",
    ) -> None:
        self._preprocessor = preprocessor or ImagePreprocessor()
        self._language = language
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def extract_text(self, image_bytes: bytes) -> OCRResult:
        start = time.perf_counter()
        try:
            image = await asyncio.to_thread(self._preprocessor.prepare, image_bytes)
            text, confidence = await asyncio.to_thread(self._run_tesseract, image)
        except Exception as exc:
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                error=str(exc),
            )
            raise ExtractionError(
                f"Tesseract OCR failed: {exc}",
                kind="image",
                provider_name=self.get_provider_name(),
            ) from exc

        elapsed = time.perf_counter() - start
        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            confidence=round(confidence, 4),
            characters=len(text),
            processing_time=round(elapsed, 3),
        )
        return OCRResult(
            raw_text=text,
            confidence=confidence,
            provider_used=self.get_provider_name(),
            processing_time=elapsed,
        )

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be found."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run_tesseract(self, image: Image.Image) -> tuple[str, float]:
        """Run Tesseract once and rebuild the text from word-level data.

        Words in the same block and paragraph are joined with spaces; a new
        paragraph starts a new line.  Words with a negative confidence are
        layout markers, not text, and are skipped.
        """
        data = pytesseract.image_to_data(
            image, lang=self._language, output_type=pytesseract.Output.DICT
        )

        lines: list[list[str]] = []
        confidences: list[float] = []
        prev_key: tuple[int, int] | None = None

        for i, word in enumerate(data["text"]):
            word = word.strip()
            conf = float(data["conf"][i])
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i])
            if key != prev_key:
                lines.append([])
                prev_key = key
            lines[-1].append(word)
            confidences.append(conf)

        text = "\n".join(" ".join(line) for line in lines)
        confidence = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0
        return text, min(1.0, max(0.0, confidence))
