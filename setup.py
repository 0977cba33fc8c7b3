# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="pdfscribe",
    version="1.0.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["pdfscribe", "pdfscribe.*"]),
    description="PDF text extraction with quality-gated, parallel Tesseract OCR.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.9",

    install_requires=[
        "PyMuPDF",
        "pytesseract",
        "Pillow",
        "numpy",
        "tqdm",
        "python-slugify",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'pdfscribe=pdfscribe.cli:main',
        ],
    },
)
