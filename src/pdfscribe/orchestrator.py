# src/pdfscribe/orchestrator.py
from __future__ import annotations

import logging
import tempfile
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .chunking import create_processing_chunks
from .config import PipelineConfig
from .exceptions import ChunkTaskError, CleanupError, OcrTimeoutError
from . import logger as _log_levels  # noqa: F401, adds Logger.progress
from .merger import merge_chunk_results
from .models import OCRPassResult, PageRange, WorkerTask
from .utils import safe_document_id

logger = logging.getLogger("pdfscribe")


class OCROrchestrator:
    """
    Runs one OCR pass over a document: chunk, fan out to the worker pool,
    race the join against the global timeout, merge in page order.
    """

    def __init__(self, pool, config: Optional[PipelineConfig] = None,
                 merger: Callable[[Sequence[Sequence[str]]], str] = merge_chunk_results):
        self.pool = pool
        self.config = config or getattr(pool, "config", None) or PipelineConfig()
        self.merger = merger

    # -----------------------------
    # Temp file helpers
    # -----------------------------
    def _write_temp_pdf(self, document_bytes: bytes, document_id: str) -> Path:
        temp_dir = Path(self.config.temp_dir)
        temp_dir.mkdir(parents=True, exist_ok=True)
        f = tempfile.NamedTemporaryFile(
            prefix=f"{safe_document_id(document_id)}_", suffix=".pdf", dir=temp_dir, delete=False
        )
        path = Path(f.name)
        try:
            with f:
                f.write(document_bytes)
        except Exception:
            self._cleanup(path, document_id)
            raise
        return path

    @staticmethod
    def _remove_temp_pdf(path: Path):
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CleanupError(f"Failed to remove temporary PDF {path}, {e}") from e

    def _cleanup(self, path: Path, document_id: str):
        try:
            self._remove_temp_pdf(path)
        except CleanupError as e:
            logger.warning("Temporary file cleanup failed for %s error=%s", document_id, e)

    # -----------------------------
    # Public entry point
    # -----------------------------
    def process_with_ocr(self, document_bytes: bytes, total_pages: int, document_id: str) -> OCRPassResult:
        start = time.perf_counter()

        if total_pages == 0:
            logger.warning("No pages to process with OCR for %s", document_id)
            return OCRPassResult(ocr_text="", chunks_processed=0, processing_time=time.perf_counter() - start)

        chunks = create_processing_chunks(total_pages, self.pool.capacity, document_id)
        if not chunks:
            return OCRPassResult(ocr_text="", chunks_processed=0, processing_time=time.perf_counter() - start)

        pdf_path = self._write_temp_pdf(document_bytes, document_id)
        try:
            chunk_results = self._process_chunks_in_parallel(chunks, pdf_path, document_id, total_pages)
            ocr_text = self.merger(chunk_results)
            elapsed = time.perf_counter() - start
            logger.info(
                "OCR processing completed for %s pages=%d chunks=%d chars=%d elapsed=%.2fs",
                document_id, total_pages, len(chunks), len(ocr_text), elapsed,
            )
            return OCRPassResult(ocr_text=ocr_text, chunks_processed=len(chunks), processing_time=elapsed)
        finally:
            self._cleanup(pdf_path, document_id)

    # -----------------------------
    # Fan-out / fan-in
    # -----------------------------
    def _process_chunks_in_parallel(self, chunks: List[PageRange], pdf_path: Path,
                                    document_id: str, total_pages: int) -> List[List[str]]:
        timeout = float(self.config.ocr_timeout_seconds)
        deadline = time.monotonic() + timeout
        cancel_event = self.pool.new_cancel_event()

        tasks = [
            WorkerTask(
                page_range=chunk,
                document_path=str(pdf_path),
                document_id=document_id,
                total_pages=total_pages,
                chunk_index=i,
            )
            for i, chunk in enumerate(chunks)
        ]

        try:
            jobs = self.pool.dispatch(tasks, cancel_event=cancel_event, deadline=deadline)
        except OcrTimeoutError:
            cancel_event.set()
            logger.error("Timed out waiting for OCR workers for %s", document_id)
            raise

        results: List[Optional[List[str]]] = [None] * len(jobs)
        pending = set(range(len(jobs)))
        poll = float(self.config.poll_interval_seconds)

        while pending:
            ready = sorted(i for i in pending if jobs[i].ready())
            if not ready:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    cancel_event.set()
                    logger.error(
                        "OCR timed out for %s unfinished=%d/%d chunks",
                        document_id, len(pending), len(jobs),
                    )
                    raise OcrTimeoutError(f"OCR processing timed out after {timeout / 60:g} minutes")
                time.sleep(min(poll, remaining))
                continue

            for i in ready:
                chunk = tasks[i].page_range
                try:
                    results[i] = jobs[i].get()
                except ChunkTaskError as e:
                    cancel_event.set()
                    logger.error("Chunk OCR failed for %s chunk=%d pages=%s error=%s", document_id, i, chunk.label, e)
                    raise
                except Exception as e:
                    cancel_event.set()
                    logger.error("Chunk OCR failed for %s chunk=%d pages=%s error=%s", document_id, i, chunk.label, e)
                    raise ChunkTaskError(
                        f"OCR failed for pages {chunk.label}, {e}", chunk_index=i, page_range=chunk.label
                    ) from e
                pending.discard(i)
                logger.progress(
                    "chunk done",
                    extra={"phase": "ocr", "current": len(jobs) - len(pending), "total": len(jobs)},
                )

        return [r or [] for r in results]
