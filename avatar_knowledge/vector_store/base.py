"""
Vector store interface and shared types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Protocol, Sequence, Set

SUPPORTED_METRICS = ("cosine", "l2", "ip")


@dataclass
class VectorRecord:
    id: str
    vector: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return str(self.metadata.get("text", ""))

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "unknown"))


@dataclass(frozen=True)
class QueryMatch:
    score: float
    text: str
    source: str
    id: str | None = None


class VectorStore(Protocol):
    def ensure_index(self, name: str, dimension: int, metric: str = "cosine") -> bool:
        ...

    def upsert(self, records: Sequence[VectorRecord]) -> int:
        ...

    def query(self, vector: Sequence[float], top_k: int) -> List[QueryMatch]:
        ...

    def existing_ids(self, ids: Iterable[str]) -> Set[str]:
        ...

    def count(self) -> int:
        ...

    def clear(self) -> None:
        ...


def distance_to_score(distance: float, metric: str) -> float:
    """Map a backend distance onto a similarity score (higher is better)."""
    distance = float(distance)
    if metric == "l2":
        return 1.0 / (1.0 + distance)
    # cosine and inner-product distances are both 1 - similarity
    return 1.0 - distance


__all__ = ["VectorRecord", "QueryMatch", "VectorStore", "SUPPORTED_METRICS", "distance_to_score"]
