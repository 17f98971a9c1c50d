from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from avatar_knowledge.config import settings
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import PartialIngestionError
from avatar_knowledge.indexing.pipeline import IngestionPipeline
from avatar_knowledge.models.schemas import (
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
    KnowledgeSource,
    ReindexRequest,
    ReindexResponse,
)
from avatar_knowledge.retrieval.service import RetrievalService
from avatar_knowledge.vector_store import get_vector_store

router = APIRouter()
logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "API keys not configured"


def get_retrieval_service(request: Request) -> RetrievalService | None:
    return getattr(request.app.state, "retrieval_service", None)


def _check_admin_token(x_admin_token: str | None) -> None:
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Admin token is not configured",
        )
    if x_admin_token != settings.admin_token.get_secret_value():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.post("/admin/reindex", response_model=ReindexResponse, summary="Ingest the documents folder")
def admin_reindex(
    reindex_request: ReindexRequest,
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> ReindexResponse | JSONResponse:
    _check_admin_token(x_admin_token)

    pipeline = IngestionPipeline(get_vector_store(), EmbeddingsClient())
    logger.info("Admin reindex requested", extra={"mode": reindex_request.mode, "clear": reindex_request.clear})

    try:
        summary = pipeline.run(
            settings.documents_dir,
            clear=reindex_request.clear,
            skip_existing=reindex_request.mode == "resume",
        )
    except PartialIngestionError as exc:
        logger.error(
            "Admin reindex stopped early",
            extra={"written": exc.written, "attempted": exc.attempted, "error": str(exc.cause)},
        )
        partial = ReindexResponse(status="partial", indexed_chunks=exc.written, attempted_chunks=exc.attempted)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=partial.model_dump())
    response = ReindexResponse(
        status="completed",
        indexed_chunks=summary.chunks_written,
        skipped_chunks=summary.chunks_skipped,
        skipped_documents=summary.documents_skipped,
        failed_documents=summary.failed_documents,
        elapsed_sec=round(summary.elapsed_sec, 2),
    )
    logger.info(
        "Admin reindex completed",
        extra={"indexed_chunks": response.indexed_chunks, "elapsed_sec": response.elapsed_sec},
    )
    return response


@router.post(
    "/knowledge-search",
    response_model=KnowledgeSearchResponse,
    summary="Search the knowledge base",
    # body is parsed by hand so malformed JSON still gets a 200
    openapi_extra={
        "requestBody": {
            "required": False,
            "content": {"application/json": {"schema": KnowledgeSearchRequest.model_json_schema()}},
        }
    },
)
async def knowledge_search(
    request: Request,
    service: RetrievalService | None = Depends(get_retrieval_service),
) -> KnowledgeSearchResponse:
    """
    Always answers 200; callers branch on `success`.
    """
    if service is None:
        logger.warning("Knowledge search called without configured clients")
        return KnowledgeSearchResponse(success=False, context="", error=NOT_CONFIGURED_ERROR)

    body: dict = {}
    raw = await request.body()
    if raw:
        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.warning("Knowledge search body is not valid JSON")
        else:
            if isinstance(parsed, dict):
                body = parsed

    query = body.get("query") or body.get("question") or ""
    if not isinstance(query, str):
        query = ""

    result = await service.retrieve(query)
    return KnowledgeSearchResponse(
        success=result.success,
        context=result.context,
        sources=[KnowledgeSource(score=m.score, text=m.text, source=m.source) for m in result.matches],
        error=result.error,
    )


__all__ = ["router", "get_retrieval_service"]
