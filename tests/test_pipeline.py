import pytest

from helpers import build_pdf, good_text
from pdfscribe.exceptions import ChunkTaskError, ExtractionError, OcrTimeoutError
from pdfscribe.models import OCRPassResult
from pdfscribe.pipeline import OCR_SEPARATOR, PDFProcessingPipeline, combine_text_results, failed_result
from pdfscribe.utils import sanitize


class FakeProcessor:
    def __init__(self, text="", pages=1, error=None):
        self.text = text
        self.pages = pages
        self.error = error

    def extract_text(self, data):
        if self.error is not None:
            raise self.error
        return self.text, self.pages

    def render_page_range(self, *args):
        raise AssertionError("pipeline must not render pages itself")


class FakeOrchestrator:
    def __init__(self, ocr_text="", error=None):
        self.ocr_text = ocr_text
        self.error = error
        self.calls = []

    def process_with_ocr(self, document_bytes, total_pages, document_id):
        self.calls.append((total_pages, document_id))
        if self.error is not None:
            raise self.error
        return OCRPassResult(ocr_text=self.ocr_text, chunks_processed=1, processing_time=0.01)


def _pipeline(processor, orchestrator):
    return PDFProcessingPipeline(orchestrator, pdf_processor=processor)


def test_good_text_layer_skips_ocr():
    text = good_text(12000)
    orch = FakeOrchestrator()
    result = _pipeline(FakeProcessor(text, pages=3), orch).process_document(b"%PDF", "deed")

    assert orch.calls == []
    assert result.method == "native_text"
    assert result.text == sanitize(text)
    assert result.total_pages == 3
    assert result.quality_score == 100


def test_zero_page_document_skips_ocr():
    orch = FakeOrchestrator()
    result = _pipeline(FakeProcessor("", pages=0), orch).process_document(b"%PDF", "empty")

    assert orch.calls == []
    assert result.text == ""
    assert "very little text extracted" in result.warnings


def test_scanned_document_uses_ocr():
    ocr_text = "Certidao de nascimento\n" + "texto reconhecido pelo ocr " * 10
    orch = FakeOrchestrator(ocr_text)
    result = _pipeline(FakeProcessor("", pages=2), orch).process_document(b"%PDF", "scan")

    assert orch.calls == [(2, "scan")]
    assert result.method == "ocr"
    assert result.text == sanitize(ocr_text)


def test_partial_text_layer_is_combined_with_ocr():
    direct = good_text(1500)
    ocr_text = "texto adicional vindo do ocr " * 10
    orch = FakeOrchestrator(ocr_text)
    result = _pipeline(FakeProcessor(direct, pages=2), orch).process_document(b"%PDF", "mixed")

    assert result.method == "ocr"
    assert result.text == sanitize(direct + OCR_SEPARATOR + ocr_text)
    assert "--- ADDITIONAL OCR TEXT ---" in result.text


def test_timeout_falls_back_to_direct_text():
    direct = good_text(1500)
    orch = FakeOrchestrator(error=OcrTimeoutError("OCR processing timed out after 10 minutes"))
    result = _pipeline(FakeProcessor(direct, pages=5), orch).process_document(b"%PDF", "slow")

    assert result.method == "native_fallback"
    assert result.text == sanitize(direct)
    assert any("timed out" in w for w in result.warnings)


def test_timeout_without_direct_text_raises():
    orch = FakeOrchestrator(error=OcrTimeoutError("OCR processing timed out after 10 minutes"))
    with pytest.raises(OcrTimeoutError):
        _pipeline(FakeProcessor("   ", pages=5), orch).process_document(b"%PDF", "slow")


def test_chunk_failure_propagates():
    orch = FakeOrchestrator(error=ChunkTaskError("OCR failed for pages 1-2", chunk_index=0, page_range="1-2"))
    with pytest.raises(ChunkTaskError):
        _pipeline(FakeProcessor(good_text(1500), pages=2), orch).process_document(b"%PDF", "bad")


def test_extraction_error_propagates():
    orch = FakeOrchestrator()
    proc = FakeProcessor(error=ExtractionError("Failed to extract text from PDF, broken xref"))
    with pytest.raises(ExtractionError):
        _pipeline(proc, orch).process_document(b"not a pdf", "broken")
    assert orch.calls == []


def test_real_parser_rejects_garbage():
    with pytest.raises(ExtractionError):
        PDFProcessingPipeline(FakeOrchestrator()).process(b"definitely not a pdf", "garbage")


def test_process_file_records_source_path(tmp_path):
    pdf = tmp_path / "Certidao Inteiro Teor.pdf"
    pdf.write_bytes(build_pdf(["Texto curto da primeira pagina"]))
    orch = FakeOrchestrator("texto do ocr " * 20)

    result = PDFProcessingPipeline(orch).process_file(pdf)

    assert result.document_id == "Certidao Inteiro Teor"
    assert result.source_path == str(pdf)
    assert orch.calls == [(1, "Certidao Inteiro Teor")]


def test_custom_sanitizer():
    orch = FakeOrchestrator("texto do ocr " * 20)
    pipeline = PDFProcessingPipeline(orch, pdf_processor=FakeProcessor("", pages=1), sanitizer=str.upper)
    assert pipeline.process(b"%PDF", "doc") == ("texto do ocr " * 20).upper()


@pytest.mark.parametrize(
    "direct,ocr,expected",
    [
        ("d" * 150, "o" * 150, "d" * 150 + OCR_SEPARATOR + "o" * 150),
        ("d" * 150, "o" * 50, "d" * 150),
        ("d" * 50, "o" * 50, "o" * 50),
        ("d" * 50, "", "d" * 50),
        ("", "", ""),
    ],
)
def test_combine_text_results(direct, ocr, expected):
    assert combine_text_results(direct, ocr) == expected


def test_failed_result():
    r = failed_result("doc", ExtractionError("boom"), source_path="/tmp/doc.pdf")
    assert r.method == "failed"
    assert r.error == "boom"
    assert r.text == ""
