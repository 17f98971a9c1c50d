"""
HTTP client for the knowledge-search endpoint.

Used by avatar sessions that run outside the retrieval process. The endpoint
always answers 200, so the outcome is read from the body.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from avatar_knowledge.config import settings
from avatar_knowledge.models.schemas import KnowledgeSearchResponse
from avatar_knowledge.retrieval.service import RetrievalFailure, RetrievalResult
from avatar_knowledge.vector_store.base import QueryMatch

logger = logging.getLogger(__name__)


class KnowledgeSearchClient:
    def __init__(
        self,
        url: str = settings.knowledge_search_url,
        timeout_sec: float = settings.knowledge_search_timeout_sec,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = url
        self.timeout_sec = timeout_sec
        self._http_client = http_client

    async def retrieve(self, query: str) -> RetrievalResult:
        if not (query or "").strip():
            return RetrievalResult.failed(RetrievalFailure.EMPTY_QUERY)

        try:
            if self._http_client is not None:
                response = await self._http_client.post(self.url, json={"query": query}, timeout=self.timeout_sec)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_sec) as client:
                    response = await client.post(self.url, json={"query": query})
            response.raise_for_status()
            body = KnowledgeSearchResponse.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.error("Knowledge search request failed", extra={"url": self.url, "error": str(exc)})
            return RetrievalResult.failed(RetrievalFailure.TRANSPORT_FAILED, str(exc))
        except (ValueError, ValidationError) as exc:
            logger.error("Knowledge search returned an unreadable body", extra={"url": self.url, "error": str(exc)})
            return RetrievalResult.failed(RetrievalFailure.TRANSPORT_FAILED, str(exc))

        if not body.success:
            logger.info("No knowledge found", extra={"error": body.error})
            return RetrievalResult(success=False, context="", error=body.error)

        matches = [QueryMatch(score=s.score, text=s.text, source=s.source) for s in body.sources]
        logger.info("Knowledge found", extra={"context_len": len(body.context)})
        return RetrievalResult(success=True, context=body.context, matches=matches)


__all__ = ["KnowledgeSearchClient"]
