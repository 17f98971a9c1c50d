import math
import os
from typing import Dict, Iterable, List, Sequence

import pytest

# Settings are read at import time
os.environ.setdefault("OPENAI_API_KEY", "test-openai")
os.environ.setdefault("VECTOR_STORE_PATH", "./.pytest_vector_store")

from avatar_knowledge.exceptions import EmbeddingError, VectorStoreError  # noqa: E402
from avatar_knowledge.retrieval.service import RetrievalResult  # noqa: E402
from avatar_knowledge.vector_store.base import QueryMatch, VectorRecord  # noqa: E402

FAKE_DIM = 8


def _cosine(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeEmbeddingsClient:
    """Deterministic bag-of-letters vectors."""

    def __init__(self, dimension: int = FAKE_DIM, fail_times: int = 0, error: Exception | None = None):
        self.dimension = dimension
        self.fail_times = fail_times
        self.error = error
        self.sync_calls: List[List[str]] = []
        self.async_calls: List[str] = []

    def _vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dimension
        for ch in text.lower():
            vec[ord(ch) % self.dimension] += 1.0
        vec[0] += 0.001
        return vec

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        self.sync_calls.append(list(texts))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise EmbeddingError("embedding service unavailable")
        return [self._vector(t) for t in texts]

    def embed_text(self, text: str) -> List[float]:
        return self.embed_texts([text])[0]

    async def aembed_text(self, text: str) -> List[float]:
        self.async_calls.append(text)
        if self.error is not None:
            raise self.error
        return self._vector(text)


class FakeVectorStore:
    def __init__(self, matches: List[QueryMatch] | None = None, error: Exception | None = None):
        self.records: Dict[str, VectorRecord] = {}
        self.matches = matches
        self.error = error
        self.ensure_calls: list = []
        self.upsert_calls: List[int] = []
        self.queries: list = []
        self.cleared = 0

    def ensure_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        self.ensure_calls.append((name, dimension, metric))
        return len(self.ensure_calls) == 1

    def upsert(self, records: Sequence[VectorRecord]) -> int:
        self.upsert_calls.append(len(records))
        for record in records:
            self.records[record.id] = record
        return len(records)

    def query(self, vector: Sequence[float], top_k: int) -> List[QueryMatch]:
        self.queries.append((list(vector), top_k))
        if self.error is not None:
            raise self.error
        if self.matches is not None:
            return list(self.matches[:top_k])
        scored = sorted(
            (QueryMatch(score=_cosine(vector, r.vector), text=r.text, source=r.source, id=r.id) for r in self.records.values()),
            key=lambda m: m.score,
            reverse=True,
        )
        return scored[:top_k]

    def existing_ids(self, ids: Iterable[str]) -> set:
        return {i for i in ids if i in self.records}

    def count(self) -> int:
        return len(self.records)

    def clear(self) -> None:
        self.cleared += 1
        self.records.clear()


class FakeRetriever:
    def __init__(self, context: str = "", success: bool = True, error: Exception | None = None):
        self.context = context
        self.success = success
        self.error = error
        self.calls: List[str] = []
        self.gate = None

    async def retrieve(self, query: str) -> RetrievalResult:
        self.calls.append(query)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return RetrievalResult(success=self.success, context=self.context if self.success else "")


class FakeChannel:
    def __init__(self, fail_speak: bool = False, fail_first_send: bool = False):
        self.spoken: List[str] = []
        self.sent: List[tuple] = []
        self.repeated: List[tuple] = []
        self.fail_speak = fail_speak
        self.fail_first_send = fail_first_send

    async def speak(self, text: str) -> None:
        if self.fail_speak:
            raise RuntimeError("speak failed")
        self.spoken.append(text)

    async def send_message(self, text: str, sync: bool = False) -> None:
        if self.fail_first_send:
            self.fail_first_send = False
            raise RuntimeError("send failed")
        self.sent.append((text, sync))

    async def repeat_message(self, text: str, sync: bool = False) -> None:
        self.repeated.append((text, sync))


@pytest.fixture
def embeddings():
    return FakeEmbeddingsClient()


@pytest.fixture
def store():
    return FakeVectorStore()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def retriever():
    return FakeRetriever(context="\n\n【参考情報1】: X is a thing")


__all__ = [
    "FAKE_DIM",
    "FakeEmbeddingsClient",
    "FakeVectorStore",
    "FakeRetriever",
    "FakeChannel",
    "VectorStoreError",
]
