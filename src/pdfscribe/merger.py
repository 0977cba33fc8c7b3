# src/pdfscribe/merger.py
from __future__ import annotations

import math
import re
from collections import Counter
from typing import Iterable, List, Sequence

# A line recurring on more than this share of OCR'd pages is a header/footer candidate
MAX_REPETITIONS_FACTOR = 0.8
MIN_COUNTED_LINE_LENGTH = 5
MAX_KEPT_SHORT_LINE_LENGTH = 3
MAX_GENERIC_LINE_LENGTH = 20

# Lines carrying data that must survive filtering
PRESERVE_PATTERNS = [
    re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b"),            # CPF
    re.compile(r"\b\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}\b"),      # CNPJ
    re.compile(r"\b\d{5}-?\d{3}\b"),                          # CEP
    re.compile(r"\bR\$\s*[\d.,]+"),
    re.compile(r"\b[A-ZÁÊÇÕ]{2,}\s+[A-ZÁÊÇÕ\s]+\b"),           # all-caps names
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\w+@\w+\.\w+"),
    re.compile(r"\(\d{2}\)\s*\d{4,5}-?\d{4}"),
    re.compile(r"\b\d+\b"),
    re.compile(r"[A-Z]{2,}\s+\d+"),
]

_DIGITS_ONLY_RE = re.compile(r"^\d+$")
_SEPARATOR_RE = re.compile(r"^[-\s]+$")
_STAMP_RE = re.compile(r"^\w+\s-\s\d{2}/\d{2}/\d{4}\s\d{2}:\d{2}:\d{2}$")


def is_generic_line(line: str) -> bool:
    """Short page-number, separator or timestamp lines."""
    if len(line) >= MAX_GENERIC_LINE_LENGTH:
        return False
    return (
        "Página" in line
        or "página" in line
        or bool(_DIGITS_ONLY_RE.match(line))
        or bool(_SEPARATOR_RE.match(line))
        or bool(_STAMP_RE.match(line))
    )


def is_structural_line(line: str) -> bool:
    return any(p.search(line) for p in PRESERVE_PATTERNS)


def count_lines(lines: Iterable[str]) -> Counter:
    return Counter(
        clean for clean in (ln.strip() for ln in lines)
        if len(clean) > MIN_COUNTED_LINE_LENGTH
    )


def merge_chunk_results(chunk_results: Sequence[Sequence[str]]) -> str:
    """
    Flatten per-chunk OCR texts in chunk order and drop running headers.

    The repetition threshold is relative to the number of page fragments, since
    a header or footer shows up once per OCR'd page. A line is dropped only when
    it is both repeated past that threshold and generic; structural lines are
    never dropped.
    """
    fragments: List[str] = [text for chunk in chunk_results for text in chunk]
    if not fragments:
        return ""

    all_lines = "\n".join(fragments).split("\n")
    line_count = count_lines(all_lines)
    max_repetitions = math.ceil(len(fragments) * MAX_REPETITIONS_FACTOR)

    kept: List[str] = []
    for line in all_lines:
        clean = line.strip()
        if len(clean) <= MAX_KEPT_SHORT_LINE_LENGTH or is_structural_line(clean):
            kept.append(line)
            continue
        if line_count[clean] > max_repetitions and is_generic_line(clean):
            continue
        kept.append(line)

    return "\n".join(kept)
