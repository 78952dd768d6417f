"""Command line entry for the knowledge intake service."""

from __future__ import annotations

import logging

import uvicorn

from knowledge_intake.core.config import settings


def run_server() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("knowledge_intake.api.main:app", host=settings.HOST, port=settings.PORT)


def main() -> None:
    run_server()


if __name__ == "__main__":
    main()
