"""
Ingestion pipeline: extract documents, chunk, embed, and upsert into vector store.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

from tqdm import tqdm

from avatar_knowledge.config import settings
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import (
    ConfigurationError,
    EmbeddingError,
    ExtractionError,
    PartialIngestionError,
    VectorStoreError,
)
from avatar_knowledge.indexing.chunker import Chunk, chunk_document, validate_chunk_params
from avatar_knowledge.indexing.extractors import (
    DOCUMENTS_DIR,
    is_supported,
    list_document_files,
    load_document,
)
from avatar_knowledge.vector_store.base import VectorRecord, VectorStore

logger = logging.getLogger(__name__)


@dataclass
class IngestionSummary:
    documents_seen: int = 0
    documents_indexed: int = 0
    documents_skipped: int = 0
    failed_documents: List[str] = field(default_factory=list)
    chunks_written: int = 0
    chunks_skipped: int = 0
    elapsed_sec: float = 0.0


@dataclass
class _SourcedChunk:
    chunk: Chunk
    source: str


class IngestionPipeline:
    """Turns a folder of documents into vector records."""

    def __init__(
        self,
        vector_store: VectorStore,
        embeddings_client: EmbeddingsClient,
        index_name: str = settings.index_name,
        dimension: int = settings.embedding_dimension,
        metric: str = settings.index_metric,
        chunk_size: int = settings.chunk_size_chars,
        chunk_overlap: int = settings.chunk_overlap_chars,
        embed_batch: int = settings.ingest_embed_batch,
        embed_retries: int = settings.ingest_embed_retries,
        retry_delay_sec: float = 1.0,
        logger_: logging.Logger | None = None,
    ) -> None:
        validate_chunk_params(chunk_size, chunk_overlap)
        if embed_batch <= 0:
            raise ConfigurationError(f"embed_batch must be positive, got {embed_batch}")
        if embed_retries < 0:
            raise ConfigurationError(f"embed_retries must be >= 0, got {embed_retries}")

        self.vector_store = vector_store
        self.embeddings_client = embeddings_client
        self.index_name = index_name
        self.dimension = dimension
        self.metric = metric
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.embed_batch = embed_batch
        self.embed_retries = embed_retries
        self.retry_delay_sec = retry_delay_sec
        self.logger = logger_ or logging.getLogger(__name__)

    def run(
        self,
        documents_dir: str | Path = DOCUMENTS_DIR,
        clear: bool = False,
        skip_existing: bool = False,
    ) -> IngestionSummary:
        started = time.time()
        summary = IngestionSummary()

        self.vector_store.ensure_index(self.index_name, self.dimension, self.metric)
        if clear:
            self.vector_store.clear()

        pending = self._collect_chunks(documents_dir, summary)
        if skip_existing and pending:
            existing = self.vector_store.existing_ids(item.chunk.id for item in pending)
            summary.chunks_skipped = len(existing)
            pending = [item for item in pending if item.chunk.id not in existing]

        self.logger.info(
            "Parsed documents",
            extra={
                "documents": summary.documents_seen,
                "indexed_documents": summary.documents_indexed,
                "chunks": len(pending),
                "already_indexed": summary.chunks_skipped,
            },
        )

        summary.chunks_written = self._embed_and_upsert(pending)
        summary.elapsed_sec = time.time() - started

        if summary.chunks_written == 0:
            self.logger.warning(
                "Ingestion finished without writing any chunks",
                extra={"documents_dir": str(documents_dir), "documents": summary.documents_seen},
            )
        self.logger.info(
            "Ingestion completed",
            extra={
                "chunks_written": summary.chunks_written,
                "failed_documents": summary.failed_documents,
                "elapsed_sec": round(summary.elapsed_sec, 2),
            },
        )
        return summary

    # --- Steps ---
    def _collect_chunks(self, documents_dir: str | Path, summary: IngestionSummary) -> List[_SourcedChunk]:
        collected: List[_SourcedChunk] = []
        for path in list_document_files(documents_dir):
            summary.documents_seen += 1
            if not is_supported(path):
                summary.documents_skipped += 1
                self.logger.info("Skipping unsupported file", extra={"file": path.name})
                continue

            try:
                document = load_document(path)
            except ExtractionError as exc:
                summary.failed_documents.append(path.name)
                self.logger.error("Extraction failed, skipping document", extra={"file": path.name, "error": str(exc)})
                continue

            chunks = chunk_document(document, self.chunk_size, self.chunk_overlap)
            if not chunks:
                summary.documents_skipped += 1
                self.logger.warning("Document produced no text", extra={"file": path.name})
                continue

            summary.documents_indexed += 1
            collected.extend(_SourcedChunk(chunk=c, source=document.source_name) for c in chunks)
            self.logger.info("Document chunked", extra={"file": path.name, "chunks": len(chunks)})
        return collected

    def _embed_with_retry(self, texts: Sequence[str]) -> List[List[float]]:
        attempt = 0
        while True:
            try:
                return self.embeddings_client.embed_texts(texts)
            except EmbeddingError as exc:
                if attempt >= self.embed_retries:
                    raise
                delay = self.retry_delay_sec * (2**attempt)
                attempt += 1
                self.logger.warning(
                    "Embedding failed, retrying",
                    extra={"attempt": attempt, "max_retries": self.embed_retries, "delay_sec": delay, "error": str(exc)},
                )
                time.sleep(delay)

    def _embed_and_upsert(self, pending: List[_SourcedChunk]) -> int:
        total = len(pending)
        written = 0
        for i in tqdm(range(0, total, self.embed_batch), desc="Ingesting", unit="batch"):
            batch = pending[i : i + self.embed_batch]
            try:
                vectors = self._embed_with_retry([item.chunk.text for item in batch])
                records = [
                    VectorRecord(
                        id=item.chunk.id,
                        vector=vector,
                        metadata={
                            "source": item.source,
                            "text": item.chunk.text,
                            "document_id": item.chunk.document_id,
                            "ordinal": item.chunk.ordinal,
                        },
                    )
                    for item, vector in zip(batch, vectors)
                ]
                written += self.vector_store.upsert(records)
            except VectorStoreError as exc:
                # PartialUpsertError carries the records its batch wrote before failing
                partial = getattr(exc, "written", 0)
                raise PartialIngestionError(written=written + partial, attempted=total, cause=exc) from exc
            except EmbeddingError as exc:
                raise PartialIngestionError(written=written, attempted=total, cause=exc) from exc
            self.logger.info("Upserted batch", extra={"count": len(batch), "offset": i})
        return written


__all__ = ["IngestionPipeline", "IngestionSummary"]
