"""
Chroma-based VectorStore implementation.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, List, Sequence, Set

import chromadb

from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import (
    DimensionMismatchError,
    PartialUpsertError,
    VectorStoreError,
)
from avatar_knowledge.vector_store.base import (
    SUPPORTED_METRICS,
    QueryMatch,
    VectorRecord,
    VectorStore,
    distance_to_score,
)

CHROMA_PERSIST_DIR = settings.vector_store_path
DEFAULT_BATCH_SIZE = settings.upsert_batch_size

logger = logging.getLogger(__name__)


class ChromaVectorStore(VectorStore):
    def __init__(
        self,
        persist_directory: str | None = None,
        collection_name: str = settings.index_name,
        dimension: int = settings.embedding_dimension,
        metric: str = settings.index_metric,
        batch_size: int = DEFAULT_BATCH_SIZE,
        ready_timeout_sec: float = settings.index_ready_timeout_sec,
        ready_poll_sec: float = settings.index_ready_poll_sec,
        client: Any | None = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.persist_directory = persist_directory or CHROMA_PERSIST_DIR
        self.collection_name = collection_name
        self.dimension = dimension
        self.metric = metric
        self.batch_size = batch_size
        self.ready_timeout_sec = ready_timeout_sec
        self.ready_poll_sec = ready_poll_sec
        self.client = client or chromadb.PersistentClient(path=self.persist_directory)
        self._collection = None
        logger.info(
            "ChromaVectorStore initialised",
            extra={"persist_directory": self.persist_directory, "collection": self.collection_name},
        )

    @property
    def collection(self):
        if self._collection is None:
            self.ensure_index(self.collection_name, self.dimension, self.metric)
        return self._collection

    # --- Index lifecycle ---
    def list_indexes(self) -> List[str]:
        # chromadb < 0.6 returns Collection objects, newer releases return names
        return [getattr(c, "name", c) for c in self.client.list_collections()]

    def ensure_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        """
        Make sure the collection exists. Returns True when it had to be created.
        """
        if metric not in SUPPORTED_METRICS:
            raise ValueError(f"Unsupported metric: {metric}")

        if name in self.list_indexes():
            collection = self.client.get_collection(name)
            stored = (collection.metadata or {}).get("dimension")
            if stored is not None and int(stored) != dimension:
                raise DimensionMismatchError(expected=int(stored), actual=dimension)
            stored_metric = (collection.metadata or {}).get("hnsw:space", metric)
            created = False
            logger.info("Index already exists", extra={"collection": name})
        else:
            self.client.create_collection(
                name=name,
                metadata={"hnsw:space": metric, "dimension": dimension},
            )
            collection = self._wait_until_ready(name)
            stored_metric = metric
            created = True
            logger.info("Index created", extra={"collection": name, "dimension": dimension, "metric": metric})

        self.collection_name = name
        self.dimension = dimension
        self.metric = stored_metric
        self._collection = collection
        return created

    def _wait_until_ready(self, name: str):
        deadline = time.monotonic() + self.ready_timeout_sec
        while True:
            try:
                return self.client.get_collection(name)
            except Exception as exc:
                if time.monotonic() >= deadline:
                    raise VectorStoreError(f"Index {name!r} not ready after {self.ready_timeout_sec}s") from exc
            logger.info("Waiting for index to become ready", extra={"collection": name})
            time.sleep(self.ready_poll_sec)

    def clear(self) -> None:
        if self.collection_name in self.list_indexes():
            self.client.delete_collection(self.collection_name)
        self._collection = None
        self.ensure_index(self.collection_name, self.dimension, self.metric)
        logger.info("Chroma collection cleared and recreated", extra={"collection": self.collection_name})

    def count(self) -> int:
        return int(self.collection.count())

    # --- Records ---
    def _check_dimension(self, vector: Sequence[float], record_id: str | None = None) -> None:
        if len(vector) != self.dimension:
            raise DimensionMismatchError(expected=self.dimension, actual=len(vector), record_id=record_id)

    def upsert(self, records: Sequence[VectorRecord]) -> int:
        if not records:
            return 0

        collection = self.collection
        for record in records:
            self._check_dimension(record.vector, record.id)

        written = 0
        for offset in range(0, len(records), self.batch_size):
            batch = records[offset : offset + self.batch_size]
            try:
                collection.upsert(
                    ids=[r.id for r in batch],
                    embeddings=[list(r.vector) for r in batch],
                    metadatas=[r.metadata for r in batch],
                    documents=[r.text for r in batch],
                )
            except Exception as exc:
                logger.error(
                    "Upsert batch failed",
                    extra={"offset": offset, "written": written, "attempted": len(records)},
                )
                raise PartialUpsertError(written=written, attempted=len(records), cause=exc) from exc
            written += len(batch)
            logger.info("Upserted batch into Chroma", extra={"count": len(batch), "collection": self.collection_name})

        return written

    def existing_ids(self, ids: Iterable[str]) -> Set[str]:
        wanted = list(ids)
        if not wanted:
            return set()
        result = self.collection.get(ids=wanted, include=[])
        return set(result.get("ids") or [])

    def query(self, vector: Sequence[float], top_k: int) -> List[QueryMatch]:
        if top_k <= 0:
            return []

        self._check_dimension(vector)
        try:
            result = self.collection.query(
                query_embeddings=[list(vector)],
                n_results=top_k,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreError(f"Chroma query failed: {exc}") from exc

        ids = (result.get("ids") or [[]])[0] or []
        texts = (result.get("documents") or [[]])[0] or []
        metadatas = (result.get("metadatas") or [[]])[0] or []
        distances = (result.get("distances") or [[]])[0] or []

        matches: List[QueryMatch] = []
        for doc_id, text, metadata, distance in zip(ids, texts, metadatas, distances):
            metadata = metadata or {}
            matches.append(
                QueryMatch(
                    score=distance_to_score(distance, self.metric),
                    text=metadata.get("text") or text or "",
                    source=metadata.get("source") or "unknown",
                    id=doc_id,
                )
            )
        # Chroma already orders by ascending distance, which is descending score
        return matches


__all__ = ["ChromaVectorStore", "CHROMA_PERSIST_DIR", "DEFAULT_BATCH_SIZE"]
