"""Image preprocessing for the optional OCR extraction path.

Scanned pages and phone photos of documents are usually far larger than
Tesseract needs, in colour, and slightly soft.  One pass fixes all three:

    1. Downsample so the longest side is at most ``max_dim`` pixels
       (small images are upscaled to ``min_dim`` so glyphs stay legible).
    2. Normalise: greyscale + autocontrast stretches the histogram.
    3. Sharpen edges with an unsharp mask.
"""

from __future__ import annotations

import io

from PIL import Image, ImageFilter, ImageOps


class ImagePreprocessor:
    """Prepares uploaded images for OCR."""

    def __init__(self, max_dim: int = 2000, min_dim: int = 1000) -> None:
        self._max_dim = max_dim
        self._min_dim = min_dim

    def prepare(self, image_bytes: bytes) -> Image.Image:
        """Decode *image_bytes* and run the full preprocessing pipeline.

        Pipeline order: resize -> normalise -> sharpen.
        """
        image = Image.open(io.BytesIO(image_bytes))
        image = ImageOps.exif_transpose(image)
        image = self.resize_for_ocr(image.convert("RGB"))
        image = self.normalize(image)
        return self.sharpen(image)

    def resize_for_ocr(self, image: Image.Image) -> Image.Image:
        """Resize so the largest dimension is between ``min_dim`` and ``max_dim``.

        Preserves aspect ratio.
        """
        width, height = image.size
        largest = max(width, height)

        if largest > self._max_dim:
            scale = self._max_dim / largest
        elif largest < self._min_dim:
            scale = self._min_dim / largest
        else:
            return image

        new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
        return image.resize(new_size, Image.Resampling.LANCZOS)

    @staticmethod
    def normalize(image: Image.Image) -> Image.Image:
        """Convert to greyscale and stretch contrast, clipping 1% outliers."""
        gray = ImageOps.grayscale(image)
        return ImageOps.autocontrast(gray, cutoff=1)

    @staticmethod
    def sharpen(image: Image.Image) -> Image.Image:
        return image.filter(ImageFilter.UnsharpMask(radius=2, percent=150, threshold=3))
