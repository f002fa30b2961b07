"""
Résumé text extraction.

Turns PDF and Word attachments into plain text for scoring. Extraction is
best-effort: any parsing failure yields an empty string so one bad file
never stops an ingestion cycle.
"""

import io
import logging
import os
import re

from docx import Document
from pypdf import PdfReader

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".doc", ".docx")

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")


def is_supported(filename: str) -> bool:
    """True for .pdf, .doc and .docx names (case-insensitive)."""
    return os.path.splitext(filename or "")[1].lower() in SUPPORTED_EXTENSIONS


def clean_text(text: str) -> str:
    """Drop control characters and collapse runs of whitespace."""
    text = _CONTROL_CHARS.sub(" ", text or "")
    return _WHITESPACE.sub(" ", text).strip()


def _pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    text_parts = []
    for page in reader.pages:
        text_parts.append(page.extract_text() or "")
    return "\n\n".join(text_parts)


def _docx_text(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    parts = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            parts.extend(cell.text for cell in row.cells)
    return "\n".join(parts)


def extract_text(data: bytes, filename: str) -> str:
    """
    Extract plain text from a résumé attachment.

    Args:
        data: Raw attachment bytes
        filename: Attachment file name; its extension picks the parser

    Returns:
        Whitespace-normalised text, or "" if the file is unsupported,
        empty or cannot be parsed. Legacy binary .doc files are tried
        with the .docx parser and usually come back empty.
    """
    if not data:
        return ""

    ext = os.path.splitext(filename or "")[1].lower()
    try:
        if ext == ".pdf":
            text = _pdf_text(data)
        elif ext in (".docx", ".doc"):
            text = _docx_text(data)
        else:
            return ""
    except Exception as e:
        logger.warning(f"Could not extract text from {filename}: {e}")
        return ""

    return clean_text(text)
