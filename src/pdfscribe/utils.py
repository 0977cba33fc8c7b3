# src/pdfscribe/utils.py
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Set

from slugify import slugify

logger = logging.getLogger("pdfscribe")

_WHITESPACE_RE = re.compile(r"\s+")


def sanitize(text: str | None) -> str:
    """Collapse every whitespace run to one space and trim."""
    if not isinstance(text, str):
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip()


def safe_document_id(name: str, fallback: str = "document") -> str:
    """
    Filesystem safe form of a document id, used for temp file names.
    """
    return slugify((name or "").strip())[:60] or fallback


def load_processed_ids(output_path: Path) -> Set[str]:
    """
    Read JSONL results and collect already processed source paths.
    Tolerates bad lines.
    """
    processed: Set[str] = set()
    if not output_path or not Path(output_path).exists():
        return processed
    try:
        with open(output_path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    continue
                sp = rec.get("source_path") if isinstance(rec, dict) else None
                if isinstance(sp, str) and sp and not rec.get("error"):
                    processed.add(sp)
    except OSError as e:
        logger.warning("Failed to read processed ids from %s, %s", output_path, e)
    return processed
