"""Resume Sync - resume ingestion and profile reconciliation over LLM task backends."""

__version__ = "0.1.0"
