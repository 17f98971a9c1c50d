import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from avatar_knowledge.api.routes import router as api_router
from avatar_knowledge.config import public_settings, settings, setup_logging
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import ConfigurationError
from avatar_knowledge.retrieval.service import RetrievalService
from avatar_knowledge.vector_store import get_vector_store

logger = setup_logging()


def build_retrieval_service() -> RetrievalService | None:
    """
    Construct the process-wide retrieval service, or None when it cannot be
    configured (knowledge search then answers success=false).
    """
    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; knowledge search disabled")
        return None
    try:
        vector_store = get_vector_store()
    except ConfigurationError:
        logger.exception("Vector store misconfigured; knowledge search disabled")
        return None
    return RetrievalService(vector_store=vector_store, embeddings_client=EmbeddingsClient())


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.retrieval_service = build_retrieval_service()
    yield
    app.state.retrieval_service = None


app = FastAPI(title="Avatar Knowledge Search", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("Application starting")
logger.info("Loaded settings: %s", public_settings())


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(api_router)
