"""
Utility script to inspect stored records without their vectors.

Usage:
    python -m scripts.inspect_index --limit 5 --offset 0
"""

from __future__ import annotations

import argparse
import json

from avatar_knowledge.vector_store.chroma_store import ChromaVectorStore


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect stored records in Chroma.")
    parser.add_argument("--limit", type=int, default=5, help="Number of records to show")
    parser.add_argument("--offset", type=int, default=0, help="Offset for pagination")
    args = parser.parse_args()

    store = ChromaVectorStore()
    collection = store.collection
    total = store.count()

    result = collection.get(
        include=["documents", "metadatas"],
        limit=args.limit,
        offset=args.offset,
    )

    ids = result.get("ids", [])
    docs = result.get("documents", []) or []
    metas = result.get("metadatas", []) or []

    print(f"Index: {store.collection_name} (dimension={store.dimension}, metric={store.metric})")
    print(f"Total records: {total}")
    print(f"Showing {len(ids)} records (offset={args.offset}, limit={args.limit})")
    for idx, (record_id, doc, meta) in enumerate(zip(ids, docs, metas), start=1):
        print(f"\n#{idx}: {record_id}")
        meta = {k: v for k, v in (meta or {}).items() if k != "text"}
        print("Metadata:", json.dumps(meta, ensure_ascii=False))
        doc = doc or ""
        snippet = doc[:400].replace("\n", " ")
        print("Text:", snippet + ("..." if len(doc) > 400 else ""))


if __name__ == "__main__":
    main()
