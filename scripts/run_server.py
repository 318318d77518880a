from __future__ import annotations

import argparse
import os

import uvicorn

from ppqsa.infrastructure.config import get_settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the PPQSA API server")
    parser.add_argument("--host", default=os.getenv("PPQSA_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PPQSA_PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    print(f"[run-server] {settings.app.title} using {settings.database.backend} storage")

    uvicorn.run(
        "ppqsa.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload or settings.is_development(),
    )


if __name__ == "__main__":
    main()
