"""Turn the pasted submission and uploaded files into searchable text sources."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional, Sequence

from rubriccheck.grading.models import UploadedFile
from .models import SourceDocument

LOG = logging.getLogger(__name__)

MAX_PDF_PAGES = 20
TEXT_MIME_TYPES = {"application/json", "application/xml", "application/x-yaml"}


def decode_base64(data: str) -> bytes:
    return base64.b64decode("".join(data.split()), validate=True)


def is_text_mime(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in TEXT_MIME_TYPES


def _pdf_text(raw: bytes, max_pages: int) -> Optional[str]:
    try:
        import fitz  # type: ignore

        with fitz.open(stream=raw, filetype="pdf") as doc:
            page_texts = [
                doc.load_page(page_idx).get_text("text")
                for page_idx in range(min(max_pages, doc.page_count))
            ]
    except Exception as exc:  # pylint: disable=broad-except
        LOG.warning("PDF text extraction failed: %s", exc)
        return None
    return "\n".join(page_texts)


def decode_file_text(uploaded: UploadedFile, max_pdf_pages: int = MAX_PDF_PAGES) -> Optional[str]:
    """
    Extract text from an uploaded file.

    Returns None for visual files (images) and for files that cannot be decoded, which
    makes them unsearchable rather than failing the caller.
    """
    mime_type = uploaded.mime_type.lower()
    if not (is_text_mime(mime_type) or mime_type == "application/pdf"):
        return None

    try:
        raw = decode_base64(uploaded.data)
    except (binascii.Error, ValueError) as exc:
        LOG.warning("Could not decode %s: %s", uploaded.name, exc)
        return None

    if mime_type == "application/pdf":
        return _pdf_text(raw, max_pdf_pages)
    return raw.decode("utf-8", errors="replace")


def build_sources(submission_text: str, submission_files: Sequence[UploadedFile]) -> List[SourceDocument]:
    """Pasted text first (when present), then every uploaded file in upload order."""
    sources: List[SourceDocument] = []
    if submission_text:
        sources.append(SourceDocument(label="Pasted text", text=submission_text))
    for idx, uploaded in enumerate(submission_files):
        sources.append(SourceDocument(
            label=uploaded.name,
            text=decode_file_text(uploaded),
            file_index=idx,
            mime_type=uploaded.mime_type,
        ))
    return sources
