"""
CLI to run a knowledge search the same way the live session does.

Example:
    python -m scripts.search_query --query "What is RAG?"
"""

from __future__ import annotations

import argparse
import asyncio

from avatar_knowledge.config import setup_logging
from avatar_knowledge.embeddings.client import EmbeddingsClient
from avatar_knowledge.retrieval.service import RetrievalService
from avatar_knowledge.vector_store import get_vector_store


def main() -> None:
    parser = argparse.ArgumentParser(description="Search the knowledge index by text query.")
    parser.add_argument("--query", "-q", required=True, help="Query text")
    parser.add_argument("--top-k", type=int, default=None, help="Override number of matches")
    parser.add_argument("--snippet", type=int, default=300, help="Snippet length for each match")
    args = parser.parse_args()

    setup_logging()
    service = RetrievalService(vector_store=get_vector_store(), embeddings_client=EmbeddingsClient())
    if args.top_k is not None:
        service.top_k = args.top_k

    result = asyncio.run(service.retrieve(args.query))

    print(f"success: {result.success}")
    if result.failure:
        print(f"failure: {result.failure.value} {result.error or ''}")
    if not result.matches:
        print("No matches")
        return

    for idx, match in enumerate(result.matches, start=1):
        snippet = match.text[: args.snippet].replace("\n", " ")
        print(f"\n#{idx} score={match.score:.4f} source={match.source} id={match.id}")
        print("text:", snippet + ("..." if len(match.text) > args.snippet else ""))
    print("\ncontext:", repr(result.context))


if __name__ == "__main__":
    main()
