"""CLI helper for printing what the dataset and the last run contain."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from . import config
from .dataset_store import DatasetStore
from .utils import load_json_file


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show per-page record counts and the last run's outcome.",
    )
    parser.add_argument(
        "--output",
        default=str(config.OUTPUT_FILE),
        help="Dataset JSON to summarise.",
    )
    parser.add_argument(
        "--summary",
        default=str(config.SUMMARY_FILE),
        help="Run summary written at the end of the last crawl.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    output = Path(args.output)
    if not output.exists():
        parser.error(f"Dataset {output} does not exist")

    # Read-only view: a corrupt file is reported, not quarantined.
    data = load_json_file(output, default=None)
    if not isinstance(data, dict):
        parser.error(f"Dataset {output} is not a valid JSON object")

    pages = sorted(data.items(), key=lambda item: DatasetStore.page_sort_key(item[0]))
    total = sum(len(records) for _, records in pages if isinstance(records, list))

    print(f"Dataset {output}")
    print(f"  pages: {len(pages)}")
    print(f"  records: {total}")
    for page, records in pages:
        count = len(records) if isinstance(records, list) else 0
        print(f"  page {page}: {count}")

    summary = load_json_file(Path(args.summary), default=None)
    if isinstance(summary, dict):
        print("\nLast run:")
        print(f"  total items: {summary.get('total_items', 0)}")
        print(f"  stop reason: {summary.get('stop_reason')}")
        failed = summary.get("failed_pages") or []
        print(f"  failed pages: {', '.join(str(p) for p in failed) if failed else 'none'}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
