from __future__ import annotations

import argparse
import sys
from pathlib import Path

import uvicorn

from cnmaturity.application.api import AssessmentService
from cnmaturity.infrastructure.config import get_settings
from cnmaturity.infrastructure.exceptions import CatalogError
from cnmaturity.infrastructure.logging import configure_from_settings

DATA_DIR = get_settings().assessment.data_dir


def ensure_content_valid(data_dir: Path | None = None) -> int:
    """Load the question bank once before serving; returns the question count."""
    service = AssessmentService.from_data_dir(data_dir or DATA_DIR)
    return len(service.catalog)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the maturity assessment API server.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_from_settings(get_settings())

    try:
        count = ensure_content_valid()
    except CatalogError as exc:
        print(f"[run-server] Refusing to start: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    print(f"[run-server] Question bank OK ({count} questions).")

    uvicorn.run(
        "cnmaturity.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
