# src/pdfscribe/chunking.py
from __future__ import annotations

import logging
import math
from typing import List

from .models import PageRange

logger = logging.getLogger("pdfscribe")

# Upper bound on chunks when pages only slightly exceed capacity
MAX_SMALL_DOC_CHUNKS = 5
MIN_CHUNK_SIZE = 3


def _fixed_size_chunks(total_pages: int, size: int) -> List[PageRange]:
    return [
        PageRange(first=start + 1, last=min(start + size, total_pages))
        for start in range(0, total_pages, size)
    ]


def create_processing_chunks(total_pages: int, capacity: int, document_id: str = "") -> List[PageRange]:
    """
    Split pages 1..total_pages into contiguous, ascending, non-overlapping
    page ranges sized for `capacity` workers.

      - total_pages <= capacity: one page per chunk
      - total_pages <= 2 * capacity: ceil(total / min(capacity, 5)) pages per chunk
      - otherwise: max(3, ceil(total / capacity)) pages per chunk
    """
    if total_pages < 0:
        raise ValueError(f"total_pages must be >= 0, got {total_pages}")
    if capacity < 1:
        raise ValueError(f"capacity must be >= 1, got {capacity}")

    if total_pages == 0:
        logger.warning("No pages to chunk for %s", document_id or "document")
        return []

    if total_pages <= capacity:
        chunks = [PageRange(first=i, last=i) for i in range(1, total_pages + 1)]
    elif total_pages <= capacity * 2:
        pages_per_worker = math.ceil(total_pages / min(capacity, MAX_SMALL_DOC_CHUNKS))
        chunks = _fixed_size_chunks(total_pages, pages_per_worker)
    else:
        chunk_size = max(MIN_CHUNK_SIZE, math.ceil(total_pages / capacity))
        chunks = _fixed_size_chunks(total_pages, chunk_size)

    logger.debug(
        "Created %d processing chunks for %s pages=%d capacity=%d chunks=%s",
        len(chunks), document_id or "document", total_pages, capacity,
        [c.label for c in chunks],
    )
    return chunks
