import threading
from typing import Callable, Optional

import pytest

from helpers import build_pdf
from pdfscribe.config import PipelineConfig


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(temp_dir=tmp_path / "work", ocr_timeout_seconds=5.0, poll_interval_seconds=0.01)


class FakeJob:
    """Stands in for a ChunkJob. Becomes ready after `polls_until_ready` polls."""

    def __init__(self, result=None, error: Optional[Exception] = None, polls_until_ready: int = 0, never: bool = False):
        self.result = result
        self.error = error
        self.polls = polls_until_ready
        self.never = never

    def ready(self):
        if self.never:
            return False
        if self.polls > 0:
            self.polls -= 1
            return False
        return True

    def get(self, timeout=None):
        if self.error is not None:
            raise self.error
        return self.result


class FakePool:
    """In-process stand-in for OCRWorkerPool; `handler(task)` builds each job."""

    def __init__(self, capacity: int, handler: Callable, config: Optional[PipelineConfig] = None):
        self.capacity = capacity
        self.handler = handler
        self.config = config
        self.dispatched = []
        self.cancel_events = []

    def new_cancel_event(self):
        ev = threading.Event()
        self.cancel_events.append(ev)
        return ev

    def dispatch(self, tasks, cancel_event=None, deadline=None):
        self.dispatched.extend(tasks)
        return [self.handler(t) for t in tasks]


@pytest.fixture
def fake_pool():
    def _make(capacity, handler, config=None):
        return FakePool(capacity, handler, config)
    return _make


@pytest.fixture
def fake_job():
    return FakeJob
