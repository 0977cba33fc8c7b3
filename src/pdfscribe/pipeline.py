# src/pdfscribe/pipeline.py
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional

from .exceptions import ChunkTaskError, ExtractionError, OcrTimeoutError, PdfScribeError
from .models import DocumentResult
from .pdf_processor import BasePDFProcessor, get_pdf_processor
from .quality import TextQualityAnalyzer
from .utils import sanitize

logger = logging.getLogger("pdfscribe")

OCR_SEPARATOR = "\n\n--- ADDITIONAL OCR TEXT ---\n\n"
MIN_SUBSTANTIAL_TEXT_CHARS = 100
MIN_FINAL_TEXT_CHARS = 50


def combine_text_results(direct_text: str, ocr_text: str) -> str:
    """
    Substantial direct text comes first, substantial OCR text is appended
    after a separator. Otherwise OCR text alone, falling back to direct text.
    """
    direct_text = direct_text or ""
    ocr_text = ocr_text or ""
    if len(direct_text.strip()) > MIN_SUBSTANTIAL_TEXT_CHARS:
        if len(ocr_text.strip()) > MIN_SUBSTANTIAL_TEXT_CHARS:
            return f"{direct_text}{OCR_SEPARATOR}{ocr_text}"
        return direct_text
    return ocr_text or direct_text


class PDFProcessingPipeline:
    """
    Direct extraction, quality check, then OCR only when the text layer
    is not good enough.

    Returns sanitized text or raises: ExtractionError when the PDF cannot be
    parsed, ChunkTaskError when the OCR pass fails, OcrTimeoutError when the
    pass times out and there is no direct text to fall back to.
    """

    def __init__(
        self,
        orchestrator,
        pdf_processor: Optional[BasePDFProcessor] = None,
        analyzer: Optional[TextQualityAnalyzer] = None,
        sanitizer: Callable[[str], str] = sanitize,
    ):
        self.orchestrator = orchestrator
        self.pdf_processor = pdf_processor or get_pdf_processor(
            getattr(getattr(orchestrator, "config", None), "pdf_engine", "pymupdf")
        )
        self.analyzer = analyzer or TextQualityAnalyzer()
        self.sanitizer = sanitizer

    def process(self, document_bytes: bytes, document_id: str) -> str:
        return self.process_document(document_bytes, document_id).text

    def process_file(self, path: Path | str, document_id: Optional[str] = None) -> DocumentResult:
        path = Path(path)
        result = self.process_document(path.read_bytes(), document_id or path.stem)
        result.source_path = str(path)
        return result

    def process_document(self, document_bytes: bytes, document_id: str) -> DocumentResult:
        start = time.perf_counter()
        logger.info("Starting PDF processing for %s", document_id)

        try:
            direct_text, total_pages = self.pdf_processor.extract_text(document_bytes)
        except ExtractionError as e:
            logger.error("Error extracting text from PDF %s, %s", document_id, e)
            raise

        analysis = self.analyzer.analyze(direct_text)
        logger.debug(
            "Text quality for %s length=%d pages=%d analysis=%s",
            document_id, len(direct_text), total_pages, analysis,
        )
        result = DocumentResult(
            document_id=document_id,
            total_pages=total_pages,
            quality_score=analysis.quality_score,
        )

        if analysis.should_skip_ocr or total_pages == 0:
            if total_pages == 0:
                logger.warning("No pages found in PDF %s", document_id)
            else:
                logger.info(
                    "Skipping OCR for %s, text quality is sufficient score=%d length=%d",
                    document_id, analysis.quality_score, len(direct_text),
                )
            result.method = "native_text"
            return self._finish(result, direct_text, start)

        logger.info(
            "Starting OCR processing for %s pages=%d score=%d direct_length=%d",
            document_id, total_pages, analysis.quality_score, len(direct_text),
        )
        try:
            ocr_result = self.orchestrator.process_with_ocr(document_bytes, total_pages, document_id)
        except OcrTimeoutError as e:
            if not direct_text.strip():
                logger.error("OCR timed out for %s and there is no direct text, %s", document_id, e)
                raise
            logger.warning("OCR timed out for %s, falling back to direct text, %s", document_id, e)
            result.method = "native_fallback"
            result.warnings.append(str(e))
            return self._finish(result, direct_text, start)
        except ChunkTaskError as e:
            logger.error("OCR processing failed for %s, %s", document_id, e)
            raise

        result.method = "ocr"
        combined = combine_text_results(direct_text, ocr_result.ocr_text)
        logger.info(
            "OCR for %s chunks=%d elapsed=%.2fs ocr_length=%d",
            document_id, ocr_result.chunks_processed, ocr_result.processing_time, len(ocr_result.ocr_text),
        )
        return self._finish(result, combined, start)

    def _finish(self, result: DocumentResult, text: str, start: float) -> DocumentResult:
        result.text = self.sanitizer(text)
        if len(result.text.strip()) < MIN_FINAL_TEXT_CHARS:
            logger.warning(
                "Very little text extracted from PDF %s final_length=%d",
                result.document_id, len(result.text),
            )
            result.warnings.append("very little text extracted")
        logger.info(
            "PDF processing completed for %s method=%s length=%d elapsed=%.2fs",
            result.document_id, result.method, len(result.text), time.perf_counter() - start,
        )
        return result


def failed_result(document_id: str, error: PdfScribeError | Exception, source_path: Optional[str] = None) -> DocumentResult:
    """DocumentResult record for a document that raised."""
    return DocumentResult(document_id=document_id, method="failed", source_path=source_path, error=str(error))
