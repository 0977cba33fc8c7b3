# pdfscribe/ocr_backends/base.py
from abc import ABC, abstractmethod
from PIL import Image

class BaseOCREngine(ABC):
    @abstractmethod
    def read_image(self, image: Image.Image) -> str:
        """Return the recognized text for one page image. Raise on engine failure."""
        pass
