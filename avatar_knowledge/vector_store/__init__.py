"""
Vector store abstractions and factories.
"""

from avatar_knowledge.config import settings
from avatar_knowledge.exceptions import ConfigurationError
from avatar_knowledge.vector_store.chroma_store import ChromaVectorStore

DEFAULT_VECTOR_STORE_BACKEND = settings.vector_store_backend


def get_vector_store(backend: str | None = None):
    """
    Factory to obtain configured VectorStore instance.
    Currently supports only Chroma backend.
    """
    backend = (backend or DEFAULT_VECTOR_STORE_BACKEND).lower()
    if backend == "chroma":
        return ChromaVectorStore()
    raise ConfigurationError(f"Unsupported vector store backend: {backend}")


__all__ = ["DEFAULT_VECTOR_STORE_BACKEND", "get_vector_store", "ChromaVectorStore"]
