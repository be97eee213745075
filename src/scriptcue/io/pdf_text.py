"""
pdf_text.py

Text extraction collaborator: turn an uploaded screenplay PDF into one flat
text stream.

Pages are extracted with pdfplumber and joined with a newline. Layout is not
preserved beyond what extract_text() yields; downstream parsing only sees a
sequence of lines.
"""
from __future__ import annotations

import io
from typing import Any, Callable, List, Union

import pdfplumber

from scriptcue.errors import UnreadableTextError


def extract_text(
    source: Union[str, bytes],
    *,
    pdf_open: Callable[..., Any] = pdfplumber.open,
) -> str:
    """
    Extract the text of every page of a PDF.

    Args:
        source: Path to the PDF, or its raw bytes.
        pdf_open: Opener returning a context manager with .pages; injectable
            for tests.

    Returns:
        Page texts joined by "\\n", with "\\r\\n" normalized to "\\n".

    Raises:
        UnreadableTextError: the PDF cannot be opened or yields no text.
    """
    target = io.BytesIO(source) if isinstance(source, bytes) else source

    pages: List[str] = []
    try:
        with pdf_open(target) as pdf:
            for p in pdf.pages:
                pages.append(p.extract_text() or "")
    except Exception as exc:
        raise UnreadableTextError(f"could not read PDF: {exc}") from exc

    text = "\n".join(pages).replace("\r\n", "\n")
    if not text.strip():
        raise UnreadableTextError(f"no text could be extracted from {len(pages)} page(s)")
    return text
