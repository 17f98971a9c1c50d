"""
Document loading: per-format text extraction for the documents folder.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Tuple

import docx
from PyPDF2 import PdfReader

from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import ExtractionError
from avatar_knowledge.indexing.chunker import Document

DOCUMENTS_DIR = settings.documents_dir

logger = logging.getLogger(__name__)


def extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    pages = [page.extract_text() or "" for page in reader.pages]
    logger.info("PDF extracted", extra={"file": path.name, "pages": len(pages)})
    return "\n".join(pages)


def extract_word(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(p.text for p in document.paragraphs)


def extract_plain_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


# extension -> (mime kind, extractor)
EXTRACTORS: Dict[str, Tuple[str, Callable[[Path], str]]] = {
    ".pdf": ("pdf", extract_pdf),
    ".docx": ("word", extract_word),
    ".txt": ("text", extract_plain_text),
    ".md": ("text", extract_plain_text),
}


def is_supported(path: Path) -> bool:
    return path.suffix.lower() in EXTRACTORS


def clean_text(text: str) -> str:
    text = text.strip()
    text = re.sub(r"\r\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    return text.strip()


def load_document(path: Path) -> Document:
    """
    Extract one file into a Document.

    Raises ExtractionError for unsupported kinds and for any failure inside
    the format-specific extractor.
    """
    entry = EXTRACTORS.get(path.suffix.lower())
    if entry is None:
        raise ExtractionError(path.name, f"unsupported file kind {path.suffix or '<none>'}")
    kind, extractor = entry

    try:
        raw = extractor(path)
    except Exception as exc:
        raise ExtractionError(path.name, str(exc)) from exc

    text = clean_text(raw)
    logger.info("Document extracted", extra={"file": path.name, "kind": kind, "chars": len(text)})
    return Document(id=path.name, source_name=path.name, raw_text=text, mime_kind=kind)


def list_document_files(documents_dir: str | Path = DOCUMENTS_DIR) -> List[Path]:
    base = Path(documents_dir)
    if not base.exists():
        return []
    return sorted(p for p in base.iterdir() if p.is_file())


__all__ = [
    "EXTRACTORS",
    "DOCUMENTS_DIR",
    "clean_text",
    "extract_pdf",
    "extract_word",
    "extract_plain_text",
    "is_supported",
    "list_document_files",
    "load_document",
]
