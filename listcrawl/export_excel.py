"""Excel export of the crawled dataset."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from . import config
from .dataset_store import DatasetStore
from .item_collector import PAGE_FIELD, POSITION_FIELD
from .utils import load_json_file, log_line


def dataset_to_frame(data: dict) -> pd.DataFrame:
    """Flatten ``{page: [record, ...]}`` into one row per record.

    Columns are the union of all record keys; records lacking a field get an
    empty cell. Rows are ordered by page, then position.
    """

    rows = []
    for page in sorted(data, key=DatasetStore.page_sort_key):
        records = data[page]
        if not isinstance(records, list):
            continue
        for record in records:
            if isinstance(record, dict):
                rows.append(record)

    df = pd.DataFrame(rows)
    if not df.empty and PAGE_FIELD in df.columns:
        sort_by = [c for c in (PAGE_FIELD, POSITION_FIELD) if c in df.columns]
        df = df.sort_values(sort_by, kind="stable").reset_index(drop=True)
    return df


def export_dataset_to_excel(
    source: Optional[Path] = None,
    dest_path: Optional[Path] = None,
) -> Path:
    """Write the dataset at ``source`` to an ``.xlsx`` workbook and return its path."""

    source = Path(source or config.OUTPUT_FILE)
    if not source.exists():
        raise FileNotFoundError(f"No dataset at {source} to export")
    data = load_json_file(source, default=None)
    if not isinstance(data, dict):
        raise ValueError(f"Dataset {source} is not a valid JSON object")

    df = dataset_to_frame(data)
    if df.empty:
        df = pd.DataFrame([{"info": "Dataset has no records"}])
        summary_page = pd.DataFrame()
    elif PAGE_FIELD in df.columns:
        summary_page = df.groupby(PAGE_FIELD).size().reset_index(name="count")
    else:
        summary_page = pd.DataFrame()

    if dest_path is None:
        config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
        dest_path = config.EXPORTS_DIR / f"{source.stem}.xlsx"
    dest_path = Path(dest_path)
    dest_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        if not summary_page.empty:
            summary_page.to_excel(writer, index=False, sheet_name="Summary_Page")

    log_line(f"[EXPORT] Wrote {len(df)} rows to {dest_path}")
    return dest_path


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Export the dataset to Excel.")
    parser.add_argument("--output", default=str(config.OUTPUT_FILE), help="Dataset JSON.")
    parser.add_argument("--dest", default=None, help="Workbook path (.xlsx).")
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        path = export_dataset_to_excel(Path(args.output), Path(args.dest) if args.dest else None)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))
    print(path)
    return 0


__all__ = ["dataset_to_frame", "export_dataset_to_excel"]


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
