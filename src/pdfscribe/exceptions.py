# pdfscribe/exceptions.py
from __future__ import annotations

class PdfScribeError(Exception):
    """Base exception for the pdfscribe library."""
    pass

class ExtractionError(PdfScribeError):
    """Raised when direct text extraction from a PDF fails."""
    pass

class ChunkTaskError(PdfScribeError):
    """Raised when a worker fails to produce a result for its chunk."""

    def __init__(self, message: str, chunk_index: int | None = None, page_range: str | None = None):
        super().__init__(message)
        self.chunk_index = chunk_index
        self.page_range = page_range

class OcrTimeoutError(PdfScribeError):
    """Raised when the OCR pass does not finish before its deadline."""
    pass

class CleanupError(PdfScribeError):
    """Temporary resource removal failed. Logged, never propagated."""
    pass
