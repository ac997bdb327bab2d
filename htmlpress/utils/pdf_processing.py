"""
PDF inspection helpers for rendered output.

Helper functions:
    page_count: Quick page count without full extraction.
    looks_like_pdf: Cheap header check on rendered bytes.
"""

from pathlib import Path
from typing import Optional, Union

from PyPDF2 import PdfReader

PDF_MAGIC = b"%PDF-"


def page_count(pdf_path: Union[Path, str]) -> Optional[int]:
    """Get page count from PDF, or None if unreadable."""
    try:
        reader = PdfReader(str(pdf_path))
        return len(reader.pages)
    except Exception:
        return None


def looks_like_pdf(data: bytes) -> bool:
    """True when the bytes start with a PDF header (leading whitespace tolerated)."""
    return data.lstrip()[: len(PDF_MAGIC)] == PDF_MAGIC
