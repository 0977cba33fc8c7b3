# src/pdfscribe/quality.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .models import QualityAnalysis

logger = logging.getLogger("pdfscribe")


QUALITY_THRESHOLDS = {
    "MIN_TEXT_LENGTH": 2000,
    "MAX_TEXT_FOR_OCR": 75000,
    "MID_TEXT_LENGTH": 10000,
    "MIN_WORD_DENSITY": 0.08,
    "MAX_WORD_DENSITY": 0.25,
    "MIN_ALPHANUMERIC_RATIO": 0.6,
    "MAX_REPETITION_RATIO": 0.6,
    "MAX_HEADER_RATIO": 0.4,
    "MIN_SUBSTANTIAL_CONTENT_INDICATORS": 3,
    "MAX_FRAGMENTED_WORDS": 10,
    "MAX_ISOLATED_DIGITS": 20,
    "MAX_SPACE_DENSITY": 0.4,
    "MIN_LINE_LENGTH": 5,
    "MIN_CONSIDERED_LINES": 3,
}

# Lines that carry document content (identifiers, amounts, dates, notarial phrases)
CONTENT_INDICATORS = [
    re.compile(r"\b\d{3}\.\d{3}\.\d{3}-\d{2}\b"),            # CPF
    re.compile(r"\b\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}\b"),      # CNPJ
    re.compile(r"matrícula\s*n[°º]\s*\d+", re.IGNORECASE),
    re.compile(r"livro\s*n[°º]\s*\d+", re.IGNORECASE),
    re.compile(r"R\$\s*[\d.,]+"),
    re.compile(r"\d{1,2}\s+de\s+\w+\s+de\s+\d{4}", re.IGNORECASE),
    re.compile(r"\d{2}/\d{2}/\d{4}"),
    re.compile(r"certifico\s+(que|e\s+dou\s+fé)", re.IGNORECASE),
    re.compile(r"brasileir\w*,?\s+\w+", re.IGNORECASE),
]

# Boilerplate found on every page of registry certificates
HEADER_PATTERNS = [
    re.compile(r"REPÚBLICA FEDERATIVA DO BRASIL", re.IGNORECASE),
    re.compile(r"COMARCA DE", re.IGNORECASE),
    re.compile(r"REGISTROS CIVIS", re.IGNORECASE),
    re.compile(r"Página \d+ de \d+", re.IGNORECASE),
    re.compile(r"Certidão de", re.IGNORECASE),
    re.compile(r"Oficial Titular", re.IGNORECASE),
    re.compile(r"Telefone", re.IGNORECASE),
    re.compile(r"WhatsApp", re.IGNORECASE),
]

_ALNUM_RE = re.compile(r"[a-zA-Z0-9À-ÿ]")
_FRAGMENTED_RE = re.compile(r"\b[a-zA-ZÀ-ÿ]\s+[a-zA-ZÀ-ÿ]\s+[a-zA-ZÀ-ÿ]")
_ISOLATED_DIGIT_RE = re.compile(r"\b\d\b")
_REPLACEMENT_CHAR = "\ufffd"


@dataclass(frozen=True)
class QualityRule:
    """
    One weighted scoring predicate.
    The predicate receives the analysis flags and the text length and returns
    True when the rule's weight should be added to the score.
    """
    name: str
    weight: int
    predicate: Callable[[QualityAnalysis, int], bool]

    def evaluate(self, analysis: QualityAnalysis, text_length: int) -> int:
        return self.weight if self.predicate(analysis, text_length) else 0


SCORING_RULES: Tuple[QualityRule, ...] = (
    QualityRule("high_quality", 40, lambda a, n: a.is_high_quality),
    QualityRule("substantial_content", 30, lambda a, n: a.has_substantial_content),
    QualityRule("not_repetitive", 20, lambda a, n: not a.is_repetitive),
    QualityRule("no_ocr_indicators", 10, lambda a, n: not a.has_ocr_indicators),
    QualityRule("adequate_length", 10, lambda a, n: 1000 <= n < 50000),
)


def _matches_any(line: str, patterns: Sequence[re.Pattern]) -> bool:
    return any(p.search(line) for p in patterns)


class TextQualityAnalyzer:
    """
    Scores directly extracted PDF text and decides whether OCR can be skipped.
    Pure function of the input text.
    """

    def __init__(self, rules: Sequence[QualityRule] = SCORING_RULES, thresholds: dict | None = None):
        self.rules = tuple(rules)
        self.t = dict(QUALITY_THRESHOLDS)
        if thresholds:
            self.t.update(thresholds)

    def analyze(self, text: str) -> QualityAnalysis:
        if not text or not text.strip():
            return QualityAnalysis()

        text_length = len(text)

        # Direct extraction on short fragments is unreliable, always verify with OCR
        if text_length < self.t["MIN_TEXT_LENGTH"]:
            return QualityAnalysis(
                should_skip_ocr=False,
                has_ocr_indicators=True,
                quality_score=10,
            )

        analysis = self._single_pass(text)
        analysis.should_skip_ocr = self._decide_skip(analysis, text_length)
        analysis.quality_score = self.score(analysis, text_length)
        return analysis

    def score(self, analysis: QualityAnalysis, text_length: int) -> int:
        total = sum(rule.evaluate(analysis, text_length) for rule in self.rules)
        return max(0, min(100, total))

    def _decide_skip(self, a: QualityAnalysis, text_length: int) -> bool:
        if a.is_repetitive or a.has_ocr_indicators:
            return False
        if text_length < self.t["MID_TEXT_LENGTH"] or text_length > self.t["MAX_TEXT_FOR_OCR"]:
            return a.is_high_quality and a.has_substantial_content
        return a.is_high_quality and a.has_substantial_content and not a.is_repetitive

    def _single_pass(self, text: str) -> QualityAnalysis:
        clean = text.strip()
        degraded = QualityAnalysis(has_ocr_indicators=True)

        if _REPLACEMENT_CHAR in clean:
            return degraded

        lines = [ln for ln in clean.split("\n") if len(ln.strip()) > self.t["MIN_LINE_LENGTH"]]
        if len(lines) < self.t["MIN_CONSIDERED_LINES"]:
            return degraded

        total_chars = len(clean)

        unique = {ln.strip() for ln in lines}
        repetition_ratio = (len(lines) - len(unique)) / len(lines)

        content_matches, header_matches = self._count_line_matches(lines)

        space_count = clean.count(" ")
        alnum_count = len(_ALNUM_RE.findall(clean))
        fragmented = len(_FRAGMENTED_RE.findall(clean))
        isolated_digits = len(_ISOLATED_DIGIT_RE.findall(clean))

        space_density = space_count / total_chars
        alnum_ratio = alnum_count / total_chars
        header_ratio = header_matches / len(lines)
        word_density = max(1.0, total_chars / 5) / total_chars

        return QualityAnalysis(
            is_high_quality=(
                alnum_ratio > self.t["MIN_ALPHANUMERIC_RATIO"]
                and self.t["MIN_WORD_DENSITY"] <= word_density <= self.t["MAX_WORD_DENSITY"]
            ),
            is_repetitive=repetition_ratio > self.t["MAX_REPETITION_RATIO"],
            has_ocr_indicators=(
                fragmented > self.t["MAX_FRAGMENTED_WORDS"]
                or isolated_digits > self.t["MAX_ISOLATED_DIGITS"]
                or space_density > self.t["MAX_SPACE_DENSITY"]
            ),
            has_substantial_content=(
                content_matches >= self.t["MIN_SUBSTANTIAL_CONTENT_INDICATORS"]
                and header_ratio <= self.t["MAX_HEADER_RATIO"]
            ),
        )

    @staticmethod
    def _count_line_matches(lines: List[str]) -> Tuple[int, int]:
        content = sum(1 for ln in lines if _matches_any(ln, CONTENT_INDICATORS))
        headers = sum(1 for ln in lines if _matches_any(ln, HEADER_PATTERNS))
        return content, headers


_default_analyzer = TextQualityAnalyzer()


def analyze_text_quality(text: str) -> QualityAnalysis:
    """Module-level shortcut using the default rule table."""
    return _default_analyzer.analyze(text)
