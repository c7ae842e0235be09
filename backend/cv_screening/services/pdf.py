"""
Text extraction from PDF resumes using PyMuPDF (no poppler dependency).
"""
import asyncio

import fitz  # PyMuPDF

from .errors import PdfParseError

DEFAULT_MAX_CHARS = 50000


def extract_text_sync(pdf_bytes: bytes, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """
    Concatenate the text layer of every page.

    Args:
        pdf_bytes: Raw PDF file bytes
        max_chars: Output is truncated to this many characters

    Returns:
        Trimmed plain text; may be empty for scanned/image-only PDFs

    Raises:
        PdfParseError if the bytes are not a readable PDF
    """
    try:
        pdf_document = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as e:
        raise PdfParseError(f"Invalid PDF: {e}") from e

    try:
        pages = [page.get_text() for page in pdf_document]
    except Exception as e:
        raise PdfParseError(f"PDF text extraction failed: {e}") from e
    finally:
        pdf_document.close()

    return "\n".join(pages).strip()[:max_chars]


async def extract_text(pdf_bytes: bytes, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Run extraction in a worker thread so the event loop keeps serving other runs."""
    return await asyncio.to_thread(extract_text_sync, pdf_bytes, max_chars)
