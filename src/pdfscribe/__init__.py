"""
pdfscribe, PDF text extraction with adaptive parallel OCR.

Direct text is extracted first and scored; OCR runs only when the text layer
is not good enough, split into page-range chunks across a worker pool.
"""

from .config import PipelineConfig, RENDER_DPI
from .exceptions import ChunkTaskError, CleanupError, ExtractionError, OcrTimeoutError, PdfScribeError
from .models import DocumentResult, OCRPassResult, PageRange, QualityAnalysis, WorkerTask
from .quality import TextQualityAnalyzer, analyze_text_quality
from .capacity import CapacityEstimator, estimate_worker_capacity
from .chunking import create_processing_chunks
from .merger import merge_chunk_results
from .worker_pool import OCRWorkerPool
from .orchestrator import OCROrchestrator
from .pipeline import PDFProcessingPipeline, combine_text_results

__version__ = "1.0.0"

__all__ = [
    "PipelineConfig",
    "RENDER_DPI",
    "PdfScribeError",
    "ExtractionError",
    "ChunkTaskError",
    "OcrTimeoutError",
    "CleanupError",
    "DocumentResult",
    "OCRPassResult",
    "PageRange",
    "QualityAnalysis",
    "WorkerTask",
    "TextQualityAnalyzer",
    "analyze_text_quality",
    "CapacityEstimator",
    "estimate_worker_capacity",
    "create_processing_chunks",
    "merge_chunk_results",
    "OCRWorkerPool",
    "OCROrchestrator",
    "PDFProcessingPipeline",
    "combine_text_results",
]
