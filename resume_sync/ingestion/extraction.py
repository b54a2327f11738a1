"""Plain-text extraction from uploaded resume files."""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Dict, Iterable, Optional, Tuple

from ..errors import ExtractionFailed, UnsupportedInput

logger = logging.getLogger("resume_sync.ingestion")

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
TEXT_MIMES = ("text/plain", "text/markdown")

SUPPORTED_MIME_TYPES = (PDF_MIME, DOCX_MIME) + TEXT_MIMES

_SUFFIX_TO_MIME = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".markdown": "text/markdown",
}


@dataclass
class ExtractedText:
    text: str
    mime_type: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def resolve_mime_type(declared: Optional[str], filename: Optional[str] = None) -> str:
    """Declared type without parameters; the filename suffix only fills a generic type."""
    mime = (declared or "").split(";", 1)[0].strip().lower()
    if mime and mime != "application/octet-stream":
        return mime
    suffix = PurePath(filename or "").suffix.lower()
    return _SUFFIX_TO_MIME.get(suffix, mime or "application/octet-stream")


def ensure_supported(mime_type: str, allowed: Iterable[str] = SUPPORTED_MIME_TYPES) -> None:
    allowed_set = {item.lower() for item in allowed} & set(SUPPORTED_MIME_TYPES)
    if mime_type not in allowed_set:
        raise UnsupportedInput(
            "Unsupported file type. Please upload a PDF, DOCX, Markdown or plain text file.",
            {"mime_type": mime_type, "allowed": sorted(allowed_set)},
        )


async def extract_text(
    content: bytes,
    declared_mime_type: Optional[str],
    *,
    filename: Optional[str] = None,
    allowed_mime_types: Iterable[str] = SUPPORTED_MIME_TYPES,
) -> ExtractedText:
    """Extract text, rejecting unsupported types before any parsing work.

    Raises:
        UnsupportedInput: the declared type is not accepted.
        ExtractionFailed: the content is unreadable or holds no text.
    """
    mime_type = resolve_mime_type(declared_mime_type, filename)
    ensure_supported(mime_type, allowed_mime_types)

    try:
        if mime_type == PDF_MIME:
            text, metadata = await asyncio.to_thread(_extract_pdf, content)
        elif mime_type == DOCX_MIME:
            text, metadata = await asyncio.to_thread(_extract_docx, content)
        else:
            text, metadata = _extract_plain(content)
    except ExtractionFailed:
        raise
    except Exception as exc:
        logger.warning("extraction_failed mime_type=%s error=%s", mime_type, exc)
        raise ExtractionFailed(
            "Failed to read the file. Please try pasting your resume text instead.",
            {"mime_type": mime_type},
        ) from exc

    if not text.strip():
        raise ExtractionFailed(
            "Could not extract text from the file. Please try a different file.",
            {"mime_type": mime_type},
        )
    logger.info("extraction_succeeded mime_type=%s characters=%d", mime_type, len(text))
    return ExtractedText(text=text, mime_type=mime_type, metadata=metadata)


def _extract_pdf(content: bytes) -> Tuple[str, Dict[str, Any]]:
    import fitz  # PyMuPDF

    with fitz.open(stream=content, filetype="pdf") as doc:
        metadata = {
            "pages": len(doc),
            "title": (doc.metadata or {}).get("title", ""),
        }
        text = "\n".join(page.get_text() for page in doc)
    return text, metadata


def _extract_docx(content: bytes) -> Tuple[str, Dict[str, Any]]:
    from docx import Document

    doc = Document(io.BytesIO(content))
    parts = [para.text for para in doc.paragraphs if para.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            row_text = "\t".join(cell.text.strip() for cell in row.cells if cell.text.strip())
            if row_text:
                parts.append(row_text)
    return "\n".join(parts), {"paragraphs": len(doc.paragraphs), "tables": len(doc.tables)}


def _extract_plain(content: bytes) -> Tuple[str, Dict[str, Any]]:
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ExtractionFailed("Text file is not valid UTF-8", {"position": exc.start}) from exc
    return text, {"lines": text.count("\n") + 1, "characters": len(text)}
