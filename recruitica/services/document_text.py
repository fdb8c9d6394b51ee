"""Plain-text extraction from uploaded keynotes.

PDFs are read with pdfplumber and Word (.docx) files with python-docx; any
other stored object is decoded as UTF-8. For PDF and Word files line breaks
and runs of whitespace are collapsed to single spaces.
"""

from __future__ import annotations

import io
import logging
import re

import docx
import pdfplumber

from recruitica.errors import RecruiticaError, StoreError, ValidationError
from recruitica.models import ExtractOut
from recruitica.store.files import FileStore, resolve_public_url

logger = logging.getLogger(__name__)

_COLLAPSE_TYPES = {"pdf", "doc", "docx"}
_LINE_BREAKS = re.compile(r"[\r\n]+")
_SPACES = re.compile(r"\s{2,}")


def clean_text(raw: str, file_type: str | None) -> str:
    if file_type in _COLLAPSE_TYPES:
        return _SPACES.sub(" ", _LINE_BREAKS.sub(" ", raw)).strip()
    return raw


def _pdf_text(data: bytes) -> str:
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n\n".join(pages)


def _docx_text(data: bytes) -> str:
    return "\n".join(p.text for p in docx.Document(io.BytesIO(data)).paragraphs)


_EXTRACTORS = {
    "pdf": _pdf_text,
    "docx": _docx_text,
}


def read_text(data: bytes, file_type: str | None) -> str:
    """Raw text of a stored document, before whitespace cleanup.

    Raises ``StoreError`` when a PDF or Word file cannot be parsed.
    """
    extractor = _EXTRACTORS.get(file_type)
    if extractor is None:
        return data.decode("utf-8", errors="replace")
    try:
        return extractor(data)
    except Exception as exc:
        logger.warning("%s text extraction failed: %s", file_type, exc)
        raise StoreError(f"Could not read {file_type.upper()} document") from exc


def extract_document_text(file_url: str | None, files: FileStore | None = None) -> ExtractOut:
    """Resolve a public storage URL, read the object and return its text.

    Raises ``ValidationError`` without a URL and ``StoreError`` when the URL
    cannot be resolved or the object cannot be read.
    """
    if not file_url:
        raise ValidationError("File URL is required")
    files = files or FileStore()

    bucket, path = resolve_public_url(file_url)
    logger.info("Extracting text from bucket=%s path=%s", bucket, path)
    data = files.download(bucket, path)
    if not data:
        raise StoreError("File not found or is empty")

    file_type = path.rsplit(".", 1)[-1].lower() if "." in path else None
    text = clean_text(read_text(data, file_type), file_type)
    logger.info("Extracted %d characters of %s text", len(text), file_type or "plain")
    return ExtractOut(success=True, text=text, file_type=file_type)


def try_extract_text(file_url: str | None, files: FileStore | None = None) -> str | None:
    """Extraction for callers that can live without it: failure yields ``None``."""
    try:
        return extract_document_text(file_url, files).text
    except RecruiticaError as exc:
        logger.info("Document text unavailable for %s: %s", file_url, exc.message)
        return None
