"""Run the CineList API with ``python -m cinelist`` or the ``cinelist`` script."""

from __future__ import annotations

import argparse
from typing import Sequence

import uvicorn

from app.config import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cinelist", description=__doc__)
    parser.add_argument("--host", default=settings.server_host)
    parser.add_argument("--port", type=int, default=settings.server_port)
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=settings.environment == "development",
        help="Restart the server when source files change.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    options = build_parser().parse_args(argv)
    uvicorn.run(
        "app.main:app",
        host=options.host,
        port=options.port,
        reload=options.reload,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
