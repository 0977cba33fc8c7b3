import time

import pytest

from helpers import build_pdf
from pdfscribe.config import PipelineConfig
from pdfscribe.exceptions import OcrTimeoutError, PdfScribeError
from pdfscribe.models import PageRange, WorkerTask
from pdfscribe.orchestrator import OCROrchestrator
from pdfscribe.pipeline import PDFProcessingPipeline
from pdfscribe.worker_pool import OCRWorkerPool

import fake_engines


@pytest.fixture
def pool_config(tmp_path):
    return PipelineConfig(
        temp_dir=tmp_path / "work",
        ocr_backend="fake_engines.EchoEngine",
        ocr_timeout_seconds=60.0,
        poll_interval_seconds=0.02,
    )


def _tasks(path, ranges):
    return [
        WorkerTask(page_range=PageRange(a, b), document_path=str(path), document_id="doc",
                   total_pages=ranges[-1][1], chunk_index=i)
        for i, (a, b) in enumerate(ranges)
    ]


def test_invalid_capacity():
    with pytest.raises(ValueError):
        OCRWorkerPool(0)


def test_dispatch_requires_started_pool(pool_config):
    pool = OCRWorkerPool(1, pool_config)
    with pytest.raises(PdfScribeError):
        pool.dispatch([])


def test_backend_kwargs_carry_languages_and_page_timeout():
    pool = OCRWorkerPool(1, PipelineConfig(languages=["pt", "en"], page_ocr_timeout_seconds=7.5))
    assert pool._backend_kwargs() == {"languages": ["pt", "en"], "timeout": 7.5}

    pool = OCRWorkerPool(1, PipelineConfig(ocr_backend_kwargs={"lang": "eng", "psm": 4}))
    assert pool._backend_kwargs() == {"lang": "eng", "psm": 4, "timeout": 20.0}


def test_chunks_run_in_worker_processes(tmp_path, pool_config):
    pdf = tmp_path / "doc.pdf"
    pdf.write_bytes(build_pdf(["um", "dois", "tres"]))

    with OCRWorkerPool(2, pool_config) as pool:
        cancel = pool.new_cancel_event()
        jobs = pool.dispatch(_tasks(pdf, [(1, 2), (3, 3)]), cancel_event=cancel)
        results = [job.get(timeout=60) for job in jobs]

        deadline = time.monotonic() + 5
        while pool.active_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        assert pool.active_tasks == 0

    assert [len(r) for r in results] == [2, 1]
    assert all(t.startswith("texto reconhecido") for r in results for t in r)


def test_dispatch_times_out_when_no_slot_frees(tmp_path, pool_config):
    pdf = tmp_path / "doc.pdf"
    pdf.write_bytes(build_pdf(["um", "dois"]))

    with OCRWorkerPool(1, pool_config, worker_fn=fake_engines.slow_chunk) as pool:
        with pytest.raises(OcrTimeoutError):
            pool.dispatch(_tasks(pdf, [(1, 1), (2, 2)]), deadline=time.monotonic() + 0.2)
        # the first job keeps its slot until it finishes
        assert pool.active_tasks == 1


def test_scanned_pdf_end_to_end(tmp_path, pool_config):
    pdf = tmp_path / "scan.pdf"
    pdf.write_bytes(build_pdf(["", "", ""]))

    with OCRWorkerPool(2, pool_config) as pool:
        pipeline = PDFProcessingPipeline(OCROrchestrator(pool, pool_config))
        result = pipeline.process_file(pdf)

    assert result.method == "ocr"
    assert result.total_pages == 3
    assert result.text.count("texto reconhecido") == 3
    assert list(pool_config.temp_dir.glob("*.pdf")) == []
