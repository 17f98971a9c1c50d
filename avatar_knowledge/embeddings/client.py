"""
OpenAI embeddings client.
"""

from __future__ import annotations

import asyncio
from typing import List, Sequence

from openai import AsyncOpenAI, OpenAI, OpenAIError

from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import EmbeddingError

DEFAULT_EMBEDDING_MODEL = settings.embedding_model_name
DEFAULT_EMBED_BATCH_SIZE = 64


class EmbeddingsClient:
    """
    Sync calls serve ingestion, `aembed_text` serves the live retrieval path.

    Failures always raise EmbeddingError; a missing vector is never replaced
    with zeros. Retrying is left to the caller.
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        timeout_sec: float = settings.embedding_timeout_sec,
        client: OpenAI | None = None,
        async_client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        self.timeout_sec = timeout_sec
        api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
        self.client = client or OpenAI(api_key=api_key, timeout=timeout_sec, max_retries=0)
        self.async_client = async_client or AsyncOpenAI(api_key=api_key, timeout=timeout_sec, max_retries=0)

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i : i + self.batch_size])
            try:
                response = self.client.embeddings.create(model=self.model, input=batch)
            except OpenAIError as exc:
                raise EmbeddingError(f"Embedding request failed: {exc}") from exc
            vectors = [item.embedding for item in response.data]
            if len(vectors) != len(batch) or any(not v for v in vectors):
                raise EmbeddingError(f"Embedding response incomplete: {len(vectors)}/{len(batch)} vectors")
            embeddings.extend(vectors)
        return embeddings

    def embed_text(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]

    async def aembed_text(self, text: str) -> List[float]:
        try:
            response = await asyncio.wait_for(
                self.async_client.embeddings.create(model=self.model, input=text),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError as exc:
            raise EmbeddingError(f"Embedding request timed out after {self.timeout_sec}s") from exc
        except OpenAIError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}") from exc

        if not response.data or not response.data[0].embedding:
            raise EmbeddingError("Embedding response contained no vector")
        return response.data[0].embedding


__all__ = ["EmbeddingsClient", "DEFAULT_EMBEDDING_MODEL"]
