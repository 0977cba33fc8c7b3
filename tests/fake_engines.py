"""OCR engines and chunk functions importable by spawned pool workers."""
import time

from pdfscribe.ocr_backends import BaseOCREngine


class EchoEngine(BaseOCREngine):
    def __init__(self, **kwargs):
        self.kwargs = kwargs

    def read_image(self, image) -> str:
        return f"texto reconhecido {image.width}x{image.height}"


def slow_chunk(task, cancel_event=None):
    time.sleep(1.0)
    return [f"pagina {task.page_range.first}"]
