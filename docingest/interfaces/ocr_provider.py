"""Abstract base class for OCR service providers.

Defines the contract for any OCR engine used by the text extractor's
optional image path.  The shipped implementation wraps Tesseract; a cloud
OCR service only needs a new concrete class, no call-site changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docingest.models.extraction import OCRResult


# Concrete implementations: TesseractOCRProvider
# Located in: docingest/providers/ocr/
class IOCRProvider(ABC):
    """Contract for OCR services that extract text from images."""

    @abstractmethod
    async def extract_text(self, image_bytes: bytes) -> OCRResult:
        """Run OCR on *image_bytes* and return the extraction result.

        Raises
        ------
        docingest.utils.errors.ExtractionError
            If the image cannot be decoded or the engine fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the OCR engine is installed and callable."""
