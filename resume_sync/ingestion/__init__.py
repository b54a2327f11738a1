"""Resume ingestion pipeline."""

from .extraction import SUPPORTED_MIME_TYPES, ExtractedText, extract_text, resolve_mime_type
from .pipeline import (
    Degraded,
    IngestionPipeline,
    IngestionResult,
    Structured,
    StructuringOutcome,
    to_document,
)

__all__ = [
    "Degraded",
    "ExtractedText",
    "IngestionPipeline",
    "IngestionResult",
    "SUPPORTED_MIME_TYPES",
    "Structured",
    "StructuringOutcome",
    "extract_text",
    "resolve_mime_type",
    "to_document",
]
