# pdfscribe/ocr_backends/tesseract_backend.py
from __future__ import annotations

from typing import Dict, Any
import logging
import os
import platform
import shutil
from pathlib import Path

import numpy as np
from PIL import Image
import pytesseract as pt

from .base import BaseOCREngine

logger = logging.getLogger("pdfscribe")


def resolve_tesseract_cmd() -> str | None:
    # 1) explicit env override
    cmd = os.getenv("TESSERACT_CMD")
    if cmd and Path(cmd).exists():
        return cmd

    # 2) look on PATH
    cmd = shutil.which("tesseract")
    if cmd:
        return cmd

    # 3) common fallbacks by OS
    system = platform.system()
    if system == "Windows":
        candidates = [
            r"C:\Program Files\Tesseract-OCR\tesseract.exe",
            r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
        ]
    elif system == "Darwin":
        candidates = [
            "/opt/homebrew/bin/tesseract",
            "/usr/local/bin/tesseract",
        ]
    else:
        candidates = [
            "/usr/bin/tesseract",
            "/usr/local/bin/tesseract",
        ]

    for p in candidates:
        if Path(p).exists():
            return p
    return None


# Map common codes to Tesseract's traineddata names
_TESS_LANG_MAP = {
    "pt": "por",
    "en": "eng",
    "es": "spa",
    "vi": "vie",
}

# Primary-mode output of this length or shorter is discarded
MIN_PRIMARY_TEXT_CHARS = 10


def _norm_langs_to_tesseract(langs) -> str:
    if isinstance(langs, str):
        langs = [langs]
    if not langs:
        langs = ["pt"]
    codes = [_TESS_LANG_MAP.get(str(l).lower(), str(l).lower()) for l in langs]
    return "+".join(sorted(set(codes)))


class TesseractOCREngine(BaseOCREngine):
    """
    Pytesseract-based backend.

    Kwargs supported (all optional):
      - languages / lang: list[str] or str → mapped to "por", "eng", ...
      - tesseract_cmd: full path to tesseract binary
      - oem: OCR engine mode (default 1 = LSTM only)
      - psm: primary page segmentation mode (default 3 = fully automatic)
      - fallback_psm: mode retried when the primary run raises (default 6)
      - timeout: seconds per tesseract invocation; the process is killed when exceeded
    """

    def __init__(self, **kwargs: Dict[str, Any]):
        k = dict(kwargs)

        tesseract_cmd = k.pop("tesseract_cmd", None) or resolve_tesseract_cmd()
        if tesseract_cmd:
            pt.pytesseract.tesseract_cmd = str(tesseract_cmd)

        self.lang = _norm_langs_to_tesseract(k.pop("languages", None) or k.pop("lang", None))
        self.oem = int(k.pop("oem", 1))
        self.psm = int(k.pop("psm", 3))
        self.fallback_psm = int(k.pop("fallback_psm", 6))
        self.timeout = float(k.pop("timeout", 20))
        if k:
            logger.debug("Ignoring unknown Tesseract options, %s", sorted(k))

    def _config(self, psm: int) -> str:
        return f"--oem {self.oem} --psm {psm}"

    def _to_pil(self, img) -> Image.Image:
        if isinstance(img, Image.Image):
            return img
        if isinstance(img, np.ndarray):
            return Image.fromarray(img)
        return Image.open(img)

    def _run(self, image: Image.Image, psm: int) -> str:
        # pytesseract kills the tesseract process and raises RuntimeError on timeout
        text = pt.image_to_string(image, lang=self.lang, config=self._config(psm), timeout=self.timeout)
        return text.strip()

    def read_image(self, image) -> str:
        pil_im = self._to_pil(image)
        try:
            text = self._run(pil_im, self.psm)
        except (pt.TesseractError, RuntimeError) as e:
            logger.debug("PSM %d failed, retrying with psm=%d error=%s", self.psm, self.fallback_psm, e)
            return self._run(pil_im, self.fallback_psm)
        # 10 characters or fewer from the primary mode counts as a blank page
        return text if len(text) > MIN_PRIMARY_TEXT_CHARS else ""
