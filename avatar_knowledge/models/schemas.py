from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field


# Admin
class ReindexRequest(BaseModel):
    """Request to ingest the documents folder."""

    mode: Literal["full", "resume"] = Field(default="full", description="full re-ingests everything, resume skips stored chunks")
    clear: bool = Field(default=False, description="Wipe the index before ingesting")


class ReindexResponse(BaseModel):
    """Ingestion outcome."""

    status: Literal["completed", "partial"] = Field(default="completed", description="partial when the run stopped early")
    indexed_chunks: int = Field(..., ge=0, description="Chunks written in this run")
    attempted_chunks: int | None = Field(None, ge=0, description="Chunks the run tried to write; set when it stopped early")
    skipped_chunks: int = Field(default=0, ge=0, description="Chunks already present and left untouched")
    skipped_documents: int = Field(default=0, ge=0)
    failed_documents: List[str] = Field(default_factory=list)
    elapsed_sec: float | None = Field(None, ge=0, description="Run duration in seconds")


# Knowledge search
class KnowledgeSearchRequest(BaseModel):
    query: str = Field(default="", description="Utterance to search the knowledge base with")


class KnowledgeSource(BaseModel):
    score: float
    text: str
    source: str


class KnowledgeSearchResponse(BaseModel):
    success: bool
    context: str = ""
    sources: List[KnowledgeSource] = Field(default_factory=list)
    error: str | None = None


__all__ = [
    "ReindexRequest",
    "ReindexResponse",
    "KnowledgeSearchRequest",
    "KnowledgeSource",
    "KnowledgeSearchResponse",
]
