"""
Error taxonomy for ingestion and retrieval.
"""

from __future__ import annotations


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge base errors."""


class ConfigurationError(KnowledgeBaseError):
    """
    Missing credentials or invalid parameters.

    Fatal at startup for ingestion; disables the feature for the search endpoint.
    """


class InvalidChunkConfigError(ConfigurationError, ValueError):
    """Chunk size/overlap combination that would give a non-positive stride."""

    def __init__(self, size: int, overlap: int) -> None:
        super().__init__(f"Invalid chunk configuration: size={size}, overlap={overlap} (need size > overlap >= 0)")
        self.size = size
        self.overlap = overlap


class EmbeddingError(KnowledgeBaseError):
    """
    Embedding service call failed or timed out.

    Transient: callers decide whether to retry.
    """


class VectorStoreError(KnowledgeBaseError):
    """Vector store call failed or the index is not usable."""


class DimensionMismatchError(VectorStoreError):
    """A vector does not match the dimensionality fixed for the index."""

    def __init__(self, expected: int, actual: int, record_id: str | None = None) -> None:
        where = f" (record {record_id})" if record_id else ""
        super().__init__(f"Vector dimension {actual} does not match index dimension {expected}{where}")
        self.expected = expected
        self.actual = actual
        self.record_id = record_id


class PartialUpsertError(VectorStoreError):
    """A batch failed mid-upsert; `written` records made it into the index."""

    def __init__(self, written: int, attempted: int, cause: Exception | None = None) -> None:
        super().__init__(f"Upsert stopped after {written}/{attempted} records: {cause}")
        self.written = written
        self.attempted = attempted
        self.cause = cause


class ExtractionError(KnowledgeBaseError):
    """Text extraction failed for one document."""

    def __init__(self, source_name: str, message: str) -> None:
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class PartialIngestionError(KnowledgeBaseError):
    """Ingestion run ended early; reports totals so an operator can resume."""

    def __init__(self, written: int, attempted: int, cause: Exception | None = None) -> None:
        super().__init__(f"Ingestion stopped after writing {written}/{attempted} chunks: {cause}")
        self.written = written
        self.attempted = attempted
        self.cause = cause


__all__ = [
    "KnowledgeBaseError",
    "ConfigurationError",
    "InvalidChunkConfigError",
    "EmbeddingError",
    "VectorStoreError",
    "DimensionMismatchError",
    "PartialUpsertError",
    "ExtractionError",
    "PartialIngestionError",
]
