# src/pdfscribe/cli.py
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import multiprocessing as mp

from tqdm import tqdm

from .capacity import estimate_worker_capacity
from .config import PipelineConfig
from .diagnostics import generate_warnings, get_system_diagnostics, log_system_diagnostics
from .exceptions import PdfScribeError
from .logger import setup_logging
from .models import DocumentTask
from .orchestrator import OCROrchestrator
from .pipeline import PDFProcessingPipeline, failed_result
from .utils import load_processed_ids
from .worker_pool import OCRWorkerPool

__all__ = ["collect_tasks", "run_pipeline", "main"]

logger = logging.getLogger("pdfscribe")


def _normalize_output_path(arg: Path) -> Path:
    """
    Accept both files and directories for --output-path.
    - If arg is an existing directory: create timestamped JSONL inside it.
    - If arg looks like a filename with no suffix: add .jsonl
    """
    out = Path(arg)
    if out.exists() and out.is_dir():
        out = out / f"pdfscribe_{datetime.now():%Y%m%d_%H%M%S}.jsonl"
    elif out.suffix == "":
        out = out.with_suffix(".jsonl")

    out.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(out, "a", encoding="utf-8"):
            pass
    except OSError as e:
        raise SystemExit(f"--output-path is not writable: {out} ({e})")
    return out


def _log_error(error_log_path: Optional[Path], source_path: str, reason: str):
    if not error_log_path:
        return
    try:
        error_log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(error_log_path, "a", encoding="utf-8") as f:
            log_entry = {
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "source_path": source_path,
                "error_reason": reason,
            }
            f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
    except OSError:
        logger.exception("Failed to write error log")


def _write_txt_file(source_path: Path, text: str):
    try:
        (source_path.parent / f"{source_path.stem}.txt").write_text(text, encoding="utf-8")
    except OSError as e:
        logger.warning("Failed to write discrete txt file for %s, %s", source_path, e)


def collect_tasks(input_dir: Path, output_path: Optional[Path] = None, force_rerun: bool = False) -> List[DocumentTask]:
    logger.info("Collecting and filtering tasks")
    processed_paths = set()
    if not force_rerun and output_path:
        processed_paths = load_processed_ids(output_path)
        if processed_paths:
            logger.info("Found %d previously processed files to skip", len(processed_paths))

    if not input_dir.exists():
        logger.error("Input directory does not exist, %s", input_dir)
        return []

    tasks = [
        DocumentTask(source_path=p)
        for p in sorted(input_dir.rglob("*"))
        if p.is_file() and p.suffix.lower() == ".pdf" and str(p) not in processed_paths
    ]
    logger.info("Selected %d files for processing", len(tasks))
    return tasks


def run_pipeline(config: PipelineConfig, tasks: List[DocumentTask], output_path: Path,
                 concurrency: int = 1, error_log_path: Optional[Path] = None, export_txt: bool = False):
    """
    Process documents with one shared worker pool.
    Up to `concurrency` documents are in flight at once and compete for the pool.
    """
    if not tasks:
        logger.info("No new files to process, all tasks are complete")
        return

    capacity = estimate_worker_capacity(config)
    logger.info("Starting pdfscribe files=%d workers=%d concurrency=%d", len(tasks), capacity, concurrency)
    logger.debug("Effective config, %s", config.to_dict())
    log_system_diagnostics(context="Host before batch")

    with OCRWorkerPool(capacity, config) as pool, open(output_path, "a", encoding="utf-8") as outfile:
        pipeline = PDFProcessingPipeline(OCROrchestrator(pool, config))

        def _one(task: DocumentTask):
            try:
                return pipeline.process_file(task.source_path)
            except PdfScribeError as e:
                return failed_result(task.source_path.stem, e, source_path=str(task.source_path))
            except Exception as e:
                logger.exception("Unexpected error processing %s", task.source_path)
                return failed_result(task.source_path.stem, e, source_path=str(task.source_path))

        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as executor:
            futures = [executor.submit(_one, t) for t in tasks]
            for fut in tqdm(as_completed(futures), total=len(futures), desc="Processing PDFs"):
                result = fut.result()
                if result.error:
                    _log_error(error_log_path, result.source_path, result.error)
                elif export_txt and result.text:
                    _write_txt_file(Path(result.source_path), result.text)
                outfile.write(json.dumps(asdict(result), ensure_ascii=False) + "\n")
                outfile.flush()

    logger.info("pdfscribe processing complete")


# -------------------------------
# CLI parsing
# -------------------------------

def _add_common_args(p: argparse.ArgumentParser):
    p.add_argument("-w", "--workers", type=int, help="Number of OCR worker processes (default: auto-detect)")
    p.add_argument("--timeout", type=float, help="Global OCR timeout per document, in seconds")
    p.add_argument("--page-timeout", type=float, help="Timeout for each tesseract call, in seconds")
    p.add_argument("-l", "--languages", nargs="+", help="Language codes for OCR (default: pt)")
    p.add_argument("--log-file", type=Path, help="Write logs to this file as well")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging on the console")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="pdfscribe, PDF text extraction with adaptive parallel OCR")
    subparsers = parser.add_subparsers(dest="command")

    rp = subparsers.add_parser("run", help="Process every PDF in a directory into a JSONL file")
    rp.add_argument("-i", "--input-dir", type=Path, required=True, help="Directory containing PDFs")
    rp.add_argument(
        "-o", "--output-path", type=Path, required=True,
        help="Output results path. Accepts a .jsonl file OR a directory (a timestamped .jsonl will be created inside).",
    )
    rp.add_argument("-c", "--concurrency", type=int, default=1, help="Documents processed at the same time")
    rp.add_argument("--force-rerun", action="store_true", help="Reprocess all files and ignore previous results")
    rp.add_argument("--error-log-path", type=Path, help="Path to save the error log JSONL file")
    rp.add_argument("--export-txt", action="store_true", help="Also export a discrete .txt next to each source file")
    _add_common_args(rp)

    ep = subparsers.add_parser("extract", help="Extract the text of one PDF")
    ep.add_argument("file", type=Path, help="PDF file")
    ep.add_argument("-o", "--output", type=Path, help="Write text here instead of stdout")
    _add_common_args(ep)

    subparsers.add_parser("diagnostics", help="Show host capacity and OCR tool availability")

    return parser.parse_args(argv)


def _config_from_args(args: argparse.Namespace, log_queue) -> PipelineConfig:
    return PipelineConfig.from_env(
        max_workers=args.workers,
        ocr_timeout_seconds=args.timeout,
        page_ocr_timeout_seconds=args.page_timeout,
        languages=args.languages,
        log_queue=log_queue,
    )


def _with_logging(args: argparse.Namespace, fn):
    ctx = mp.get_context("spawn")
    manager = ctx.Manager()
    log_queue = manager.Queue(-1)
    listener = setup_logging(
        log_queue,
        level=logging.DEBUG if args.verbose else logging.INFO,
        file_path=args.log_file,
    )
    listener.start()
    try:
        return fn(_config_from_args(args, log_queue))
    finally:
        listener.stop()
        manager.shutdown()


def _run_from_cli(args: argparse.Namespace) -> None:
    output_path = _normalize_output_path(args.output_path)

    def _go(config: PipelineConfig):
        tasks = collect_tasks(args.input_dir, output_path, args.force_rerun)
        run_pipeline(
            config, tasks, output_path,
            concurrency=args.concurrency,
            error_log_path=args.error_log_path,
            export_txt=args.export_txt,
        )

    _with_logging(args, _go)


def _extract_from_cli(args: argparse.Namespace) -> int:
    def _go(config: PipelineConfig) -> int:
        with OCRWorkerPool(estimate_worker_capacity(config), config) as pool:
            pipeline = PDFProcessingPipeline(OCROrchestrator(pool, config))
            try:
                result = pipeline.process_file(args.file)
            except PdfScribeError as e:
                logger.error("Failed to process %s, %s", args.file, e)
                return 1
        if args.output:
            args.output.write_text(result.text, encoding="utf-8")
        else:
            print(result.text)
        return 0

    return _with_logging(args, _go)


def main(argv: Optional[List[str]] = None):
    args = _parse_args(argv)

    if args.command == "run":
        _run_from_cli(args)
        return

    if args.command == "extract":
        sys.exit(_extract_from_cli(args))

    if args.command == "diagnostics":
        d = get_system_diagnostics()
        d["warnings"] = generate_warnings(d)
        print(json.dumps(d, indent=2, default=str))
        return

    print("Usage:\n  pdfscribe run -i <input_dir> -o <output.jsonl> [options]\n  pdfscribe extract <file.pdf>\n  pdfscribe diagnostics")
    sys.exit(2)


if __name__ == "__main__":
    main()
