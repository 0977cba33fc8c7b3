# src/pdfscribe/pdf_processor.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Tuple

import fitz  # PyMuPDF

from .exceptions import ExtractionError

logger = logging.getLogger("pdfscribe")


# --- Step 1, interface ---
class BasePDFProcessor(ABC):
    """
    Interface for any PDF processing engine.
    """

    @abstractmethod
    def extract_text(self, data: bytes) -> Tuple[str, int]:
        """Extracts the embedded text layer, returns (text, total_pages). Raises ExtractionError."""
        raise NotImplementedError

    @abstractmethod
    def render_page_range(self, file_path: Path, first: int, last: int, dpi: int, temp_dir: Path) -> List[str]:
        """Renders pages first..last (1-indexed, inclusive) to image files and returns their paths in page order."""
        raise NotImplementedError


# --- Step 2, concrete implementation with PyMuPDF ---
class PyMuPDFProcessor(BasePDFProcessor):
    """PDF processor that uses PyMuPDF."""

    def extract_text(self, data: bytes) -> Tuple[str, int]:
        """
        Extract text using layout aware blocks.
        This is usually more reliable for complex PDFs than the plain text mode.
        """
        try:
            parts: List[str] = []
            with fitz.open(stream=data, filetype="pdf") as doc:
                total_pages = doc.page_count
                for page in doc:
                    # sort=True gives reading order
                    blocks = page.get_text("blocks", sort=True)
                    # b[6] == 0 means text block
                    page_text = [b[4] for b in blocks if len(b) > 6 and b[6] == 0]
                    if page_text:
                        parts.append("\n".join(page_text))
        except Exception as e:
            raise ExtractionError(f"Failed to extract text from PDF, {e}") from e

        text = "\n".join(parts).strip()
        if not text:
            logger.debug("Native text extractor returned empty text")
        return text, total_pages

    def render_page_range(self, file_path: Path, first: int, last: int, dpi: int, temp_dir: Path) -> List[str]:
        """
        Render each page of the range to a PNG image on disk and return the paths.
        Errors propagate so the whole chunk fails.
        """
        temp_dir.mkdir(parents=True, exist_ok=True)
        zoom = dpi / 72.0
        paths: List[str] = []
        with fitz.open(file_path) as doc:
            if last > doc.page_count:
                raise ValueError(f"Page range {first}-{last} exceeds document length {doc.page_count}")
            for page_num in range(first, last + 1):
                page = doc.load_page(page_num - 1)
                # Prefer matrix-based scaling (consistent across PyMuPDF versions)
                pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
                out = temp_dir / f"page-{page_num:05d}.png"
                pix.save(str(out))
                paths.append(str(out))
        return paths


# --- Step 3, factory ---
def get_pdf_processor(engine_name: str = "pymupdf") -> BasePDFProcessor:
    """
    Create a PDF processor by name.
    """
    name = (engine_name or "").lower()
    if name == "pymupdf":
        return PyMuPDFProcessor()
    raise ValueError(f"Unknown PDF engine, '{engine_name}'. Supported engines, ['pymupdf']")
