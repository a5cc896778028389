"""OCR provider implementations (optional image path of the text extractor)."""
