"""
Retrieval: embed a live utterance, search the index, build a bounded context string.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Protocol, Sequence

from avatar_knowledge.config import settings
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import EmbeddingError, VectorStoreError
from avatar_knowledge.vector_store.base import QueryMatch, VectorStore

logger = logging.getLogger(__name__)

CONTEXT_MARKER = "【参考情報{index}】"


class RetrievalFailure(str, Enum):
    EMPTY_QUERY = "empty_query"
    NOT_CONFIGURED = "not_configured"
    EMBEDDING_FAILED = "embedding_failed"
    STORE_FAILED = "store_failed"
    TIMEOUT = "timeout"
    TRANSPORT_FAILED = "transport_failed"
    INTERNAL_ERROR = "internal_error"


@dataclass
class RetrievalResult:
    """
    Outcome of one knowledge search.

    Failures are soft: `success` is False, `context` is empty and `failure`
    says why. Callers branch on this object instead of catching exceptions.
    """

    success: bool
    context: str = ""
    matches: List[QueryMatch] = field(default_factory=list)
    failure: RetrievalFailure | None = None
    error: str | None = None

    @classmethod
    def failed(cls, failure: RetrievalFailure, error: str | None = None) -> "RetrievalResult":
        return cls(success=False, context="", matches=[], failure=failure, error=error)

    @property
    def has_context(self) -> bool:
        return self.success and bool(self.context)


class Retriever(Protocol):
    async def retrieve(self, query: str) -> RetrievalResult:
        ...


def build_context(matches: Sequence[QueryMatch], max_chars: int) -> str:
    """
    Number the matches and join them, then cut at `max_chars`.

    The cut is a hard character cutoff and can split a sentence or a marker.
    """
    context = "\n".join(
        f"\n\n{CONTEXT_MARKER.format(index=idx)}: {match.text}" for idx, match in enumerate(matches, start=1)
    )
    return context[:max_chars]


class RetrievalService:
    """Best-effort knowledge search for live turns."""

    def __init__(
        self,
        vector_store: VectorStore,
        embeddings_client: EmbeddingsClient,
        top_k: int = settings.retrieval_top_k,
        relevance_threshold: float = settings.relevance_threshold,
        max_context_chars: int = settings.max_context_chars,
        query_timeout_sec: float = settings.query_timeout_sec,
        logger_: logging.Logger | None = None,
    ) -> None:
        self.vector_store = vector_store
        self.embeddings_client = embeddings_client
        self.top_k = top_k
        self.relevance_threshold = relevance_threshold
        self.max_context_chars = max_context_chars
        self.query_timeout_sec = query_timeout_sec
        self.logger = logger_ or logging.getLogger(__name__)

    # --- Public API ---
    async def retrieve(self, query: str) -> RetrievalResult:
        normalized = self.normalize_query(query or "")
        if not normalized:
            return RetrievalResult.failed(RetrievalFailure.EMPTY_QUERY)

        self.logger.info("Knowledge search", extra={"query_len": len(normalized)})
        try:
            vector = await self.embeddings_client.aembed_text(normalized)
            matches = await asyncio.wait_for(
                asyncio.to_thread(self.vector_store.query, vector, self.top_k),
                timeout=self.query_timeout_sec,
            )
        except EmbeddingError as exc:
            self.logger.warning("Knowledge search embedding failed", extra={"error": str(exc)})
            return RetrievalResult.failed(RetrievalFailure.EMBEDDING_FAILED, str(exc))
        except asyncio.TimeoutError:
            self.logger.warning("Knowledge search timed out", extra={"timeout_sec": self.query_timeout_sec})
            return RetrievalResult.failed(RetrievalFailure.TIMEOUT, "vector query timed out")
        except VectorStoreError as exc:
            self.logger.warning("Knowledge search store query failed", extra={"error": str(exc)})
            return RetrievalResult.failed(RetrievalFailure.STORE_FAILED, str(exc))
        except Exception as exc:
            self.logger.exception("Knowledge search failed unexpectedly")
            return RetrievalResult.failed(RetrievalFailure.INTERNAL_ERROR, str(exc))

        relevant = self.filter_relevant(matches)
        context = build_context(relevant, self.max_context_chars)
        self.logger.info(
            "Knowledge search completed",
            extra={
                "returned": len(matches),
                "relevant": len(relevant),
                "top_score": round(matches[0].score, 3) if matches else None,
                "context_len": len(context),
            },
        )
        return RetrievalResult(success=True, context=context, matches=relevant)

    # --- Steps ---
    @staticmethod
    def normalize_query(text: str) -> str:
        return " ".join(text.strip().split())

    def filter_relevant(self, matches: Sequence[QueryMatch]) -> List[QueryMatch]:
        # Keep store order; it is already descending by score.
        return [m for m in matches if m.score >= self.relevance_threshold]


__all__ = [
    "RetrievalService",
    "RetrievalResult",
    "RetrievalFailure",
    "Retriever",
    "build_context",
    "CONTEXT_MARKER",
]
