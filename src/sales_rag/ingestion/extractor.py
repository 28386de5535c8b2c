"""Text extraction from uploaded file buffers.

Best-effort linear text only: no OCR and no layout reconstruction.
"""

from __future__ import annotations

import io
import logging
import mimetypes
from pathlib import Path

from docx import Document as DocxDocument
from pypdf import PdfReader

from sales_rag.errors import UnsupportedFileType
from sales_rag.ingestion.models import ExtractResult

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".docx", ".doc", ".txt", ".md")


def extract_text(buffer: bytes, filename: str) -> ExtractResult:
    """Extract plain text from *buffer*, dispatching on *filename*'s extension.

    Parameters
    ----------
    buffer:
        Raw file contents.
    filename:
        Original file name; only its extension is inspected.

    Returns
    -------
    ExtractResult
        The text, plus ``page_count`` for PDFs.

    Raises
    ------
    UnsupportedFileType
        When the extension is not one of :data:`SUPPORTED_EXTENSIONS`.
    """
    ext = Path(filename).suffix.lower()

    if ext == ".pdf":
        return _extract_pdf(buffer, filename)
    if ext in (".docx", ".doc"):
        return _extract_docx(buffer, filename)
    if ext in (".txt", ".md"):
        return ExtractResult(text=buffer.decode("utf-8"), filename=filename)

    raise UnsupportedFileType(ext)


def extract_from_file(path: str | Path) -> ExtractResult:
    """Read a local file and extract its text."""
    path = Path(path)
    return extract_text(path.read_bytes(), path.name)


def guess_mime_type(filename: str) -> str:
    """MIME type recorded on the document row at upload time."""
    mime, _ = mimetypes.guess_type(filename)
    return mime or "application/octet-stream"


def _extract_pdf(buffer: bytes, filename: str) -> ExtractResult:
    reader = PdfReader(io.BytesIO(buffer))
    pages = [page.extract_text() or "" for page in reader.pages]
    logger.debug("Extracted %d page(s) from %s", len(pages), filename)
    return ExtractResult(text="\n".join(pages), page_count=len(pages), filename=filename)


def _extract_docx(buffer: bytes, filename: str) -> ExtractResult:
    doc = DocxDocument(io.BytesIO(buffer))
    text = "\n".join(p.text for p in doc.paragraphs)
    return ExtractResult(text=text, filename=filename)
