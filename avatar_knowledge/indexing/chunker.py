"""
Text chunking utilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List

from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import InvalidChunkConfigError

CHUNK_SIZE_CHARS = settings.chunk_size_chars
CHUNK_OVERLAP_CHARS = settings.chunk_overlap_chars


@dataclass(frozen=True)
class Document:
    id: str
    source_name: str
    raw_text: str
    mime_kind: str


@dataclass(frozen=True)
class Chunk:
    document_id: str
    ordinal: int
    text: str

    @property
    def id(self) -> str:
        return f"{self.document_id}_{self.ordinal}"


def validate_chunk_params(size: int, overlap: int) -> None:
    if not (size > overlap >= 0):
        raise InvalidChunkConfigError(size, overlap)


class TextWindows:
    """
    Fixed-size overlapping windows over a text.

    Lazy and restartable: every iteration walks the text again. Windows are
    trimmed and whitespace-only windows are dropped.
    """

    def __init__(self, text: str, size: int, overlap: int) -> None:
        validate_chunk_params(size, overlap)
        self.text = text or ""
        self.size = size
        self.overlap = overlap

    @property
    def stride(self) -> int:
        return self.size - self.overlap

    def __iter__(self) -> Iterator[str]:
        start = 0
        length = len(self.text)
        while start < length:
            window = self.text[start : start + self.size].strip()
            if window:
                yield window
            start += self.stride


def chunk_text(text: str, size: int = CHUNK_SIZE_CHARS, overlap: int = CHUNK_OVERLAP_CHARS) -> TextWindows:
    return TextWindows(text, size, overlap)


def chunk_document(
    document: Document,
    size: int = CHUNK_SIZE_CHARS,
    overlap: int = CHUNK_OVERLAP_CHARS,
) -> List[Chunk]:
    return [
        Chunk(document_id=document.id, ordinal=ordinal, text=window)
        for ordinal, window in enumerate(chunk_text(document.raw_text, size, overlap), start=1)
    ]


__all__ = [
    "Document",
    "Chunk",
    "TextWindows",
    "chunk_text",
    "chunk_document",
    "validate_chunk_params",
    "CHUNK_SIZE_CHARS",
    "CHUNK_OVERLAP_CHARS",
]
