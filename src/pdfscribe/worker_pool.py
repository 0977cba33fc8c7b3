# src/pdfscribe/worker_pool.py
from __future__ import annotations

import logging
import multiprocessing as mp
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

from .chunk_worker import initialize_chunk_worker, process_chunk
from .config import PipelineConfig
from .exceptions import OcrTimeoutError, PdfScribeError
from .models import WorkerTask

logger = logging.getLogger("pdfscribe")


class ChunkJob:
    """Handle for one chunk task submitted to the pool."""

    def __init__(self, task: WorkerTask, async_result):
        self.task = task
        self._result = async_result

    def ready(self) -> bool:
        return self._result.ready()

    def get(self, timeout: Optional[float] = None) -> List[str]:
        """Return the chunk texts, re-raising the worker's exception on failure."""
        return self._result.get(timeout)


class OCRWorkerPool:
    """
    Fixed-size pool of OCR worker processes.

    All `capacity` processes are spawned and initialized by start(), so a burst
    of chunk dispatches never pays engine start-up time. The pool is meant to be
    shared by every pipeline call in the process: a bounded semaphore sized to
    capacity is the admission gate, each dispatched task holds one slot until
    it completes or fails.
    """

    def __init__(
        self,
        capacity: int,
        config: Optional[PipelineConfig] = None,
        start_method: str = "spawn",
        worker_fn: Callable[..., List[str]] = process_chunk,
    ):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self.config = config or PipelineConfig()
        self.start_method = start_method
        self.worker_fn = worker_fn

        self._pool = None
        self._manager = None
        self._slots = threading.BoundedSemaphore(self.capacity)
        self._lock = threading.Lock()
        self._active = 0

    # -----------------------------
    # Lifecycle
    # -----------------------------
    def _backend_kwargs(self) -> Dict[str, Any]:
        kw = dict(self.config.ocr_backend_kwargs or {})
        if "languages" not in kw and "lang" not in kw:
            kw["languages"] = self.config.languages
        kw.setdefault("timeout", self.config.page_ocr_timeout_seconds)
        return kw

    def start(self) -> "OCRWorkerPool":
        if self._pool is not None:
            return self
        ctx = mp.get_context(self.start_method)
        self.config.temp_dir.mkdir(parents=True, exist_ok=True)
        self._manager = ctx.Manager()
        self._pool = ctx.Pool(
            processes=self.capacity,
            initializer=initialize_chunk_worker,
            initargs=(
                self.config.log_queue,
                self.config.ocr_backend,
                self._backend_kwargs(),
                self.config.pdf_engine,
                str(self.config.temp_dir),
            ),
        )
        logger.info("OCR worker pool started with %d processes", self.capacity)
        return self

    def close(self):
        """Let in-flight tasks finish, then stop the workers."""
        if self._pool is not None:
            self._pool.close()
            self._pool.join()
            self._pool = None
            logger.info("OCR worker pool has been shut down.")
        self._shutdown_manager()

    def terminate(self):
        """Kill all worker processes immediately, abandoning in-flight tasks."""
        if self._pool is not None:
            self._pool.terminate()
            self._pool.join()
            self._pool = None
            logger.warning("OCR worker pool terminated.")
        self._shutdown_manager()

    def _shutdown_manager(self):
        if self._manager is not None:
            try:
                self._manager.shutdown()
            except Exception:
                logger.exception("Failed to stop the pool manager process")
            self._manager = None

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.close()
        else:
            self.terminate()

    @property
    def active_tasks(self) -> int:
        with self._lock:
            return self._active

    # -----------------------------
    # Dispatch
    # -----------------------------
    def new_cancel_event(self):
        """A process-shared event a pass sets to stop its in-flight chunks."""
        if self._manager is None:
            raise PdfScribeError("Worker pool is not started")
        return self._manager.Event()

    def _release(self, _result=None):
        with self._lock:
            self._active -= 1
        self._slots.release()

    def _acquire(self, deadline: Optional[float]) -> bool:
        if deadline is None:
            acquired = self._slots.acquire()
        else:
            acquired = self._slots.acquire(timeout=max(0.0, deadline - time.monotonic()))
        if acquired:
            with self._lock:
                self._active += 1
        return acquired

    def dispatch(self, tasks: Sequence[WorkerTask], cancel_event=None, deadline: Optional[float] = None) -> List[ChunkJob]:
        """
        Submit one job per task, in order.

        Waits for a free worker slot before each submission. `deadline` is a
        time.monotonic() value; OcrTimeoutError is raised if no slot frees up
        before it. Jobs submitted before the timeout keep running.
        """
        if self._pool is None:
            raise PdfScribeError("Worker pool is not started")

        jobs: List[ChunkJob] = []
        for task in tasks:
            if not self._acquire(deadline):
                raise OcrTimeoutError(
                    f"No OCR worker became available for {task.document_id} "
                    f"({len(jobs)}/{len(tasks)} chunks dispatched)"
                )
            try:
                async_result = self._pool.apply_async(
                    self.worker_fn,
                    (task, cancel_event),
                    callback=self._release,
                    error_callback=self._release,
                )
            except Exception:
                self._release()
                raise
            jobs.append(ChunkJob(task, async_result))
        return jobs
