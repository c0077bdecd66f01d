"""Command-line batch renderer for mathrender."""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from mathrender import __version__
from mathrender.config import Settings
from mathrender.services.batch import BatchRenderer
from mathrender.services.pipeline import build_pipeline
from mathrender.utils.log import setup_logging


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mathrender-batch",
        description="Render a JSON array of math queries and write the results as one JSON document.",
    )
    parser.add_argument("input", nargs="?", help="Input JSON file (default: stdin)")
    parser.add_argument("output", nargs="?", help="Output JSON file (default: stdout)")
    parser.add_argument("-c", "--config", help="Env file with mathrender settings")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose error information")
    parser.add_argument("--concurrency", type=int, help="Maximum number of renders in flight")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _read_input(path: str | None) -> Any:
    if path:
        text = Path(path).read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()
    return json.loads(text)


def _write_output(path: str | None, data: dict[str, Any]) -> None:
    text = json.dumps(data)
    if path:
        Path(path).write_text(text, encoding="utf-8")
    else:
        sys.stdout.write(text)
        sys.stdout.flush()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # stdout carries the result document
    setup_logging(level="DEBUG" if args.verbose else "WARNING", sink=sys.stderr)

    try:
        app_settings = Settings(_env_file=args.config) if args.config else Settings()
    except ValidationError as exc:
        logger.error(f"Invalid configuration: {exc}")
        return 2

    try:
        entries = _read_input(args.input)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error(f"Cannot read batch input: {exc}")
        return 1
    if not isinstance(entries, list):
        logger.error("Batch input must be a JSON array")
        return 1

    concurrency = args.concurrency if args.concurrency is not None else app_settings.MAX_CONCURRENT_RENDERS
    if concurrency <= 0:
        logger.error("--concurrency must be positive")
        return 2

    renderer = BatchRenderer(build_pipeline(app_settings), max_concurrent=concurrency)
    result = asyncio.run(renderer.render_all(entries))

    try:
        _write_output(args.output, result)
    except OSError as exc:
        logger.error(f"Cannot write batch output: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
