"""
Run the knowledge-search API.

Example:
    python -m scripts.serve
"""

from __future__ import annotations

import uvicorn

from avatar_knowledge.config import settings


def main() -> None:
    uvicorn.run("avatar_knowledge.main:app", host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    main()
