"""CLI entrypoint."""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv as _load_dotenv

from citygrid import config
from citygrid.config import ConfigError, load_settings
from citygrid.pipeline import run


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_types(raw: str) -> List[str]:
    return [t.strip() for t in raw.split(",") if t.strip()]


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {raw!r}")
    return value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Enumerate places across a city with a grid of nearby searches",
        usage='%(prog)s "City Name" [--types=a,b] [--test=3] [--out DIR]',
    )
    parser.add_argument("city", nargs="+", help="City or place name to sweep")
    parser.add_argument(
        "--types",
        type=parse_types,
        default=list(config.DEFAULT_PLACE_TYPES),
        help="Comma-separated place types (default: %s)" % ",".join(config.DEFAULT_PLACE_TYPES),
    )
    parser.add_argument(
        "--test",
        dest="test_limit",
        type=_positive_int,
        default=None,
        help="Only search the first N grid points (cost-bounded dry run)",
    )
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR, help="Output directory")
    parser.add_argument(
        "--progress-file",
        type=str,
        default=None,
        help="Optional JSON file refreshed with sweep progress",
    )
    args = parser.parse_args(argv)
    args.city = " ".join(args.city).strip()
    if not args.city:
        parser.error("city must not be empty")
    return args


def _install_sigint_handler(cancel_event: threading.Event) -> None:
    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        print("Interrupt received; finishing current point and exporting.", file=sys.stderr)
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        settings = load_settings(os.environ)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    cancel_event = threading.Event()
    _install_sigint_handler(cancel_event)

    try:
        result = run(
            city=args.city,
            types=args.types,
            api_key=settings.api_key,
            test_limit=args.test_limit,
            output_dir=args.out,
            cancel_event=cancel_event,
            progress_path=args.progress_file,
        )
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if result.cancelled:
        print(
            f"Cancelled after {result.grid_processed}/{result.grid_total} grid points. "
            f"Partial results written to {result.output_path}"
        )
    else:
        print(f"Done. {len(result.records)} places written to {result.output_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
