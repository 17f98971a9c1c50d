"""
CLI to ingest the documents folder into the knowledge index.

Example:
    python -m scripts.ingest_documents --documents-dir ./documents
    python -m scripts.ingest_documents --resume
"""

from __future__ import annotations

import argparse
import logging
import sys

from avatar_knowledge.config import settings, setup_logging
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.exceptions import ConfigurationError, PartialIngestionError, VectorStoreError
from avatar_knowledge.indexing.pipeline import IngestionPipeline
from avatar_knowledge.vector_store import get_vector_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest PDF / Word / text documents into the knowledge index.")
    parser.add_argument("--documents-dir", default=settings.documents_dir, help="Folder with source documents.")
    parser.add_argument("--embed-batch", type=int, default=settings.ingest_embed_batch, help="Chunks per embedding request.")
    parser.add_argument(
        "--embed-retries",
        type=int,
        default=settings.ingest_embed_retries,
        help="Retries per embedding batch before the run aborts (0 = fail on first error).",
    )
    parser.add_argument("--clear", action="store_true", help="Wipe the index before ingesting.")
    parser.add_argument("--resume", action="store_true", help="Skip chunks already stored in the index.")
    return parser.parse_args()


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    args = parse_args()

    if not settings.openai_api_key:
        logger.error("OPENAI_API_KEY is not set")
        sys.exit(1)

    try:
        pipeline = IngestionPipeline(
            get_vector_store(),
            EmbeddingsClient(),
            embed_batch=args.embed_batch,
            embed_retries=args.embed_retries,
            logger_=logger,
        )
        summary = pipeline.run(args.documents_dir, clear=args.clear, skip_existing=args.resume)
    except ConfigurationError:
        logger.exception("Invalid configuration")
        sys.exit(1)
    except PartialIngestionError as exc:
        logger.error("Ingestion stopped early: %s", exc)
        print(f"Written {exc.written}/{exc.attempted} chunks. Re-run with --resume to continue.")
        sys.exit(1)
    except VectorStoreError:
        logger.exception("Vector store unavailable; nothing was written")
        sys.exit(1)
    except Exception:
        logger.exception("Ingestion failed")
        sys.exit(1)

    print(
        f"Written chunks: {summary.chunks_written} (already indexed {summary.chunks_skipped}, "
        f"documents {summary.documents_indexed}/{summary.documents_seen}, elapsed {summary.elapsed_sec:.2f}s)"
    )
    if summary.failed_documents:
        print("Failed documents:", ", ".join(summary.failed_documents))


if __name__ == "__main__":
    main()
