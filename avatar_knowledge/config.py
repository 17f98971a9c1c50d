"""
Application configuration loaded from environment variables.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised application settings."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")
    embedding_model_name: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL_NAME")
    embedding_dimension: int = Field(default=1536, alias="EMBEDDING_DIMENSION")
    embedding_timeout_sec: float = Field(default=10.0, alias="EMBEDDING_TIMEOUT_SEC")

    vector_store_backend: str = Field(default="chroma", alias="VECTOR_STORE_BACKEND")
    vector_store_path: str = Field(default="./data/vector_store", alias="VECTOR_STORE_PATH")
    index_name: str = Field(default="knowledge-base", alias="INDEX_NAME")
    index_metric: str = Field(default="cosine", alias="INDEX_METRIC")
    index_ready_timeout_sec: float = Field(default=30.0, alias="INDEX_READY_TIMEOUT_SEC")
    index_ready_poll_sec: float = Field(default=1.0, alias="INDEX_READY_POLL_SEC")
    upsert_batch_size: int = Field(default=100, alias="UPSERT_BATCH_SIZE")

    documents_dir: str = Field(default="./documents", alias="DOCUMENTS_DIR")
    chunk_size_chars: int = Field(default=1000, alias="CHUNK_SIZE_CHARS")
    chunk_overlap_chars: int = Field(default=200, alias="CHUNK_OVERLAP_CHARS")
    # 0 keeps a single embedding failure fatal for the whole ingestion run
    ingest_embed_retries: int = Field(default=0, alias="INGEST_EMBED_RETRIES")
    ingest_embed_batch: int = Field(default=64, alias="INGEST_EMBED_BATCH")

    retrieval_top_k: int = Field(default=3, alias="RETRIEVAL_TOP_K")
    relevance_threshold: float = Field(default=0.1, alias="RELEVANCE_THRESHOLD")
    max_context_chars: int = Field(default=500, alias="MAX_CONTEXT_CHARS")
    query_timeout_sec: float = Field(default=5.0, alias="QUERY_TIMEOUT_SEC")

    knowledge_search_url: str = Field(
        default="http://localhost:8000/knowledge-search", alias="KNOWLEDGE_SEARCH_URL"
    )
    knowledge_search_timeout_sec: float = Field(default=15.0, alias="KNOWLEDGE_SEARCH_TIMEOUT_SEC")

    admin_token: SecretStr | None = Field(default=None, alias="ADMIN_TOKEN")

    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")


settings = Settings()


def setup_logging() -> logging.Logger:
    """
    Configure base logging for the app.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
    )
    return logging.getLogger("avatar_knowledge")


def public_settings() -> Dict[str, Any]:
    """
    Return settings without secrets for safe logging/inspection.
    """
    return settings.model_dump(
        exclude={"openai_api_key", "admin_token"},
        exclude_none=True,
    )


__all__ = ["Settings", "settings", "setup_logging", "public_settings"]
