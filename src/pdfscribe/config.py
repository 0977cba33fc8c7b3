# pdfscribe/config.py
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import List, Dict, Any, Optional, Mapping
import os
import tempfile

# Rasterization resolution for OCR. Fixed, balances OCR speed against accuracy.
RENDER_DPI = 150

DEFAULT_OCR_BACKEND = "pdfscribe.ocr_backends.tesseract_backend.TesseractOCREngine"


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        return None


@dataclass
class PipelineConfig:
    """Configuration for the PDF text pipeline and its OCR worker pool."""
    # Worker count override; None or <= 0 means auto-detect
    max_workers: Optional[int] = None

    ocr_timeout_seconds: float = 600.0          # global budget for one OCR pass
    page_ocr_timeout_seconds: float = 20.0      # per tesseract invocation
    poll_interval_seconds: float = 0.05

    languages: List[str] = field(default_factory=lambda: ['pt'])
    ocr_backend: str = DEFAULT_OCR_BACKEND
    ocr_backend_kwargs: Dict[str, Any] = field(default_factory=dict)

    pdf_engine: str = "pymupdf"
    temp_dir: Path = Path(tempfile.gettempdir()) / "pdfscribe_temp"

    log_queue: Optional[Any] = None

    def to_dict(self):
        """Plain dict of the settings, for logging and JSON. The log queue is left out."""
        d = asdict(replace(self, log_queue=None))
        d.pop("log_queue")
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict):
        d = dict(config_dict)

        if "temp_dir" in d and isinstance(d["temp_dir"], str):
            d["temp_dir"] = Path(d["temp_dir"])

        # allow explicit None to mean use default
        for key in ["ocr_timeout_seconds", "page_ocr_timeout_seconds", "poll_interval_seconds", "languages"]:
            if d.get(key) is None:
                d.pop(key, None)

        known = set(cls.__dataclass_fields__)
        return cls(**{k: v for k, v in d.items() if k in known})

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, **overrides):
        """
        Build a config from environment variables.
        Keyword overrides win over the environment.
        """
        env = os.environ if env is None else env
        d: Dict[str, Any] = {
            "max_workers": _env_int(env, "PDF_MAX_WORKERS"),
            "ocr_timeout_seconds": _env_float(env, "PDF_OCR_TIMEOUT_SECONDS"),
            "page_ocr_timeout_seconds": _env_float(env, "PDF_PAGE_OCR_TIMEOUT_SECONDS"),
        }
        langs = env.get("PDF_OCR_LANGUAGES")
        if langs and langs.strip():
            d["languages"] = [s.strip() for s in langs.split(",") if s.strip()]
        d.update({k: v for k, v in overrides.items() if v is not None})
        return cls.from_dict(d)

    @property
    def worker_override(self) -> Optional[int]:
        if self.max_workers is not None and self.max_workers > 0:
            return int(self.max_workers)
        return None
