# pdfscribe/models.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

@dataclass
class DocumentTask:
    """Represents a single file to be processed."""
    source_path: Path


@dataclass(frozen=True)
class PageRange:
    """1-indexed, inclusive page bounds assigned to one chunk."""
    first: int
    last: int

    def __post_init__(self):
        if self.first < 1 or self.last < self.first:
            raise ValueError(f"Invalid page range {self.first}-{self.last}")

    @property
    def page_count(self) -> int:
        return self.last - self.first + 1

    @property
    def label(self) -> str:
        return f"{self.first}-{self.last}"


@dataclass
class WorkerTask:
    """Input for one chunk worker. Must stay picklable."""
    page_range: PageRange
    document_path: str
    document_id: str
    total_pages: int
    chunk_index: int = 0


@dataclass
class QualityAnalysis:
    should_skip_ocr: bool = False
    is_high_quality: bool = False
    is_repetitive: bool = False
    has_ocr_indicators: bool = False
    has_substantial_content: bool = False
    quality_score: int = 0


@dataclass
class OCRPassResult:
    """Output of one orchestrated OCR pass."""
    ocr_text: str
    chunks_processed: int
    processing_time: float


@dataclass
class DocumentResult:
    """Represents the final output for a single document."""
    document_id: str
    text: str = ""
    total_pages: int = 0
    # native_text | ocr | native_fallback | failed
    method: str = "failed"
    quality_score: int = 0
    source_path: Optional[str] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
