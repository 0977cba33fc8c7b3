# src/pdfscribe/logger.py

import logging
import sys
from pathlib import Path
from multiprocessing import Queue as MPQueue # The process-safe queue for workers
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from typing import Union, Optional

# --- Custom Log Level for Progress ---
PROGRESS = 25
logging.addLevelName(PROGRESS, "PROGRESS")

def progress(self, msg, *args, **kwargs):
    if self.isEnabledFor(PROGRESS):
        self._log(PROGRESS, msg, args, **kwargs)

logging.Logger.progress = progress

LOG_FORMAT = "%(asctime)s | %(processName)-15s | %(levelname)-8s | %(message)s"

# --- Custom Filters ---
class ExcludeLevelFilter(logging.Filter):
    def __init__(self, levelno: int):
        super().__init__()
        self.levelno = levelno
    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno != self.levelno

# --- Main Configuration Function ---
def setup_logging(
    log_queue: MPQueue,
    *,
    level: int = logging.INFO,
    console: bool = True,
    show_progress: bool = False,
    file_path: Optional[Union[str, Path]] = None,
    file_level: Optional[int] = None,
) -> QueueListener:
    """
    Sets up the logging listener architecture.

    The main process logs through a QueueHandler as well, so records from the
    pipeline and from pool workers come out of the same listener in order.

    Args:
        log_queue: The process-safe queue that all workers will log to.
        level: The base logging level for console output.
        console: Whether to write records to stderr.
        show_progress: Keep PROGRESS records on the console.
        file_path: Path to the persistent log file.
        file_level: The logging level for the file.

    Returns:
        A QueueListener instance. You must call .start() on it.
    """
    handlers = []

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(level)
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        if not show_progress:
            ch.addFilter(ExcludeLevelFilter(PROGRESS))
        handlers.append(ch)

    if file_path:
        fp = Path(file_path)
        fp.parent.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(fp, maxBytes=5*1024*1024, backupCount=2, encoding="utf-8")
        fh.setLevel(file_level if file_level is not None else level)
        fh.setFormatter(logging.Formatter(LOG_FORMAT))
        fh.addFilter(ExcludeLevelFilter(PROGRESS))
        handlers.append(fh)

    # The main process logs into the same queue
    configure_worker_logging(log_queue, level=min(level, file_level or level))

    listener = QueueListener(log_queue, *handlers, respect_handler_level=True)
    return listener

def configure_worker_logging(log_queue: Optional[MPQueue], level: int = logging.DEBUG):
    """
    Configures the logger for a worker process.
    This is called in the initializer of a multiprocessing.Pool.
    It removes all existing handlers and adds only a QueueHandler.
    Without a queue the worker keeps default propagation.
    """
    if log_queue is None:
        return
    logger = logging.getLogger("pdfscribe")
    logger.setLevel(level)

    # Remove any handlers that may have been inherited from the parent process
    logger.handlers.clear()
    logger.propagate = False

    qh = QueueHandler(log_queue)
    logger.addHandler(qh)
