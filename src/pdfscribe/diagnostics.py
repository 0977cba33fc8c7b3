# src/pdfscribe/diagnostics.py
from __future__ import annotations

import logging
import os
import platform
import shutil
import tempfile
from typing import Any, Dict, List

import fitz
import pytesseract as pt

from .capacity import CapacityEstimator

logger = logging.getLogger("pdfscribe")

LOW_DISK_USAGE_PCT = 90.0


def _memory_info() -> Dict[str, Any]:
    try:
        page = os.sysconf("SC_PAGE_SIZE")
        total = os.sysconf("SC_PHYS_PAGES") * page
        free = os.sysconf("SC_AVPHYS_PAGES") * page
    except (ValueError, OSError, AttributeError):
        return {}
    used = total - free
    return {
        "total": total,
        "free": free,
        "used": used,
        "usage_percent": (used / total) * 100 if total else 0.0,
    }


def _tesseract_version() -> str | None:
    try:
        return str(pt.get_tesseract_version())
    except (pt.TesseractNotFoundError, OSError) as e:
        logger.debug("Tesseract not available, %s", e)
        return None


def get_system_diagnostics(estimator: CapacityEstimator | None = None) -> Dict[str, Any]:
    estimator = estimator or CapacityEstimator()
    try:
        load = list(os.getloadavg())
    except (OSError, AttributeError):
        load = []

    disk: Dict[str, Any] = {}
    tmp = tempfile.gettempdir()
    try:
        usage = shutil.disk_usage(tmp)
        disk = {
            "path": tmp,
            "free": usage.free,
            "usage_percent": (usage.used / usage.total) * 100 if usage.total else 0.0,
        }
    except OSError as e:
        logger.debug("Cannot read disk usage for %s, %s", tmp, e)

    return {
        "cpu": {"count": estimator.cpu_count, "load_average": load},
        "memory": _memory_info(),
        "disk": disk,
        "software": {
            "python": platform.python_version(),
            "platform": platform.platform(),
            "pymupdf": getattr(fitz, "VersionBind", None),
            "tesseract": _tesseract_version(),
        },
        "containerization": {
            "containerized": estimator.is_containerized(),
            "cpu_limit": estimator.cpu_limit(),
        },
        "worker_capacity": estimator.estimate(),
    }


def generate_warnings(d: Dict[str, Any]) -> List[str]:
    warnings: List[str] = []

    mem = d.get("memory") or {}
    if mem.get("usage_percent", 0) > 90:
        warnings.append("High memory usage detected (>90%)")

    cpu = d.get("cpu") or {}
    if cpu.get("load_average") and cpu["load_average"][0] > cpu.get("count", 0):
        warnings.append("High CPU load detected")

    cont = d.get("containerization") or {}
    if cont.get("containerized"):
        warnings.append("Running in containerized environment, performance may be limited")
        limit = cont.get("cpu_limit")
        if limit and limit < cpu.get("count", 0):
            warnings.append(f"CPU limited to {limit:g} cores by container")

    if not (d.get("software") or {}).get("tesseract"):
        warnings.append("Tesseract OCR not available or not properly installed")

    if (d.get("disk") or {}).get("usage_percent", 0) > LOW_DISK_USAGE_PCT:
        warnings.append("Low disk space in temp directory")

    return warnings


def log_system_diagnostics(log: logging.Logger | None = None, context: str = "System diagnostics") -> Dict[str, Any]:
    log = log or logger
    d = get_system_diagnostics()
    d["warnings"] = generate_warnings(d)
    log.info("%s, %s", context, d)
    return d
