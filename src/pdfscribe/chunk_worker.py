# src/pdfscribe/chunk_worker.py
from __future__ import annotations

import importlib
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
from PIL import Image, ImageOps

from .config import RENDER_DPI
from .exceptions import ChunkTaskError
from .logger import configure_worker_logging
from .models import WorkerTask
from .pdf_processor import BasePDFProcessor, get_pdf_processor

logger = logging.getLogger("pdfscribe")

# One engine and one PDF processor per worker process
ocr_engine: Any | None = None
pdf_processor: BasePDFProcessor | None = None
worker_temp_root: Optional[str] = None

# Linear contrast stretch around mid-gray: out = in * 1.2 - 25.6
CONTRAST_GAIN = 1.2
CONTRAST_OFFSET = -(128 * CONTRAST_GAIN) + 128


def _import_obj(dotted: str):
    mod_path, _, attr = dotted.rpartition(".")
    if not mod_path or not attr:
        raise ImportError(f"Invalid backend path, {dotted}")
    mod = importlib.import_module(mod_path)
    try:
        return getattr(mod, attr)
    except AttributeError as e:
        raise ImportError(f"Backend class not found, {dotted}") from e


def initialize_chunk_worker(log_queue, backend_path: str, backend_kwargs: dict,
                            pdf_engine: str = "pymupdf", temp_root: Optional[str] = None):
    """
    Called once in each pool process.
    Loads the OCR backend and the PDF processor used for rasterization.
    """
    configure_worker_logging(log_queue)
    pid = os.getpid()
    logger.info("Initializing OCR worker backend=%s pid=%s", backend_path, pid)
    try:
        EngineCls = _import_obj(backend_path)
    except Exception:
        logger.exception("Cannot import backend, %s", backend_path)
        raise

    global ocr_engine, pdf_processor, worker_temp_root
    try:
        ocr_engine = EngineCls(**(backend_kwargs or {}))
    except Exception:
        logger.exception("Backend initialization failed for %s", backend_path)
        raise
    pdf_processor = get_pdf_processor(pdf_engine)
    worker_temp_root = temp_root

    logger.info("OCR worker ready pid=%s", pid)


def preprocess_image(img: Image.Image) -> Image.Image:
    """Grayscale, normalize contrast, then stretch it linearly."""
    gray = ImageOps.autocontrast(img.convert("L"))
    arr = np.asarray(gray, dtype=np.float32) * CONTRAST_GAIN + CONTRAST_OFFSET
    return Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))


def _ocr_page(image_path: str, engine) -> str:
    with Image.open(image_path) as im:
        prepared = preprocess_image(im)
    return engine.read_image(prepared).strip()


def process_chunk(task: WorkerTask, cancel_event=None, engine=None, processor: BasePDFProcessor | None = None) -> List[str]:
    """
    Rasterize and OCR one page range.
    Returns the non-empty page texts in page order. Failed pages are skipped;
    a rasterization failure fails the whole chunk.
    """
    engine = engine or ocr_engine
    processor = processor or pdf_processor
    if engine is None or processor is None:
        raise ChunkTaskError("Chunk worker called before initialization",
                             chunk_index=task.chunk_index, page_range=task.page_range.label)

    start = time.perf_counter()
    pr = task.page_range
    render_dir = Path(tempfile.mkdtemp(prefix="pdfscribe_chunk_", dir=worker_temp_root))
    texts: List[str] = []

    try:
        try:
            image_paths = processor.render_page_range(
                Path(task.document_path), pr.first, pr.last, RENDER_DPI, render_dir
            )
        except Exception as e:
            raise ChunkTaskError(
                f"Rasterization failed for pages {pr.label} of {task.document_id}, {e}",
                chunk_index=task.chunk_index, page_range=pr.label,
            ) from e

        for offset, image_path in enumerate(image_paths):
            page_num = pr.first + offset
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "OCR pass cancelled for %s, stopping chunk %s at page %d",
                    task.document_id, pr.label, page_num,
                )
                break
            try:
                text = _ocr_page(image_path, engine)
            except Exception as e:
                logger.warning("OCR failed on %s page=%d, skipping error=%s", task.document_id, page_num, e)
                continue
            if text:
                texts.append(text)
            else:
                logger.debug("OCR returned no text for %s page %d", task.document_id, page_num)

        logger.debug(
            "Chunk %s of %s done pages_with_text=%d/%d elapsed=%.2fs",
            pr.label, task.document_id, len(texts), pr.page_count, time.perf_counter() - start,
        )
        return texts
    finally:
        try:
            shutil.rmtree(render_dir)
        except OSError as e:
            logger.warning("Failed to remove chunk temp dir %s, %s", render_dir, e)
