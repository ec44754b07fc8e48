"""Crash-safe on-disk dataset keyed by page number.

Layout (all JSON, UTF-8):

- ``<output>``: ``{"<page>": [record, ...], ...}``; only ever replaced
  atomically, so it always parses to an object.
- ``<backup>/page_<N>_data.json``: raw batch written before each merge.
- ``<backup>/backup_<ts>.json`` / ``corrupt_data_<ts>.json``: quarantined
  copies of an unreadable dataset found at start-up / during a merge.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .error_codes import ErrorCode, ScrapeError
from .logging_utils import _scraper_event
from .models import PageBatch
from .utils import file_timestamp, log_line, save_json_file, unique_path


class PersistError(ScrapeError):
    """Merging a page into the live dataset failed; the live file is untouched."""

    def __init__(self, page_number: int, message: str) -> None:
        super().__init__(ErrorCode.PERSIST, message)
        self.page_number = page_number


class DatasetStore:
    def __init__(self, output_path: Path, backup_dir: Path) -> None:
        self.output_path = Path(output_path)
        self.backup_dir = Path(backup_dir)

    # ------------------------------------------------------------------
    # Reading + validation
    # ------------------------------------------------------------------

    def _read_document(self) -> Optional[Dict[str, Any]]:
        """Return the parsed document, ``None`` if missing or blank.

        Raises ``ValueError`` (which covers JSON and UTF-8 decode errors) when
        the file exists but does not hold a JSON object.
        """

        if not self.output_path.exists():
            return None
        content = self.output_path.read_text(encoding="utf-8")
        if not content.strip():
            return None
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"dataset root is {type(data).__name__}, expected an object")
        return data

    def quarantine(self, prefix: str) -> Optional[Path]:
        """Copy the live document aside under a unique timestamped name."""

        if not self.output_path.exists():
            return None
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = unique_path(self.backup_dir, f"{prefix}_{file_timestamp()}")
        shutil.copy2(self.output_path, target)
        _scraper_event(
            "store", step="quarantine", source=str(self.output_path), target=str(target)
        )
        return target

    def initialize(self) -> None:
        """Make sure the live document exists and parses to an object.

        Never raises: problems are logged and resolved by quarantining the bad
        file and starting from an empty dataset.
        """

        try:
            existed = self.output_path.exists()
            try:
                data = self._read_document()
            except ValueError as exc:
                target = self.quarantine("backup")
                save_json_file(self.output_path, {})
                log_line(
                    f"[STORE] Dataset {self.output_path} is invalid ({exc}); "
                    f"saved copy to {target} and reinitialised"
                )
                return
            if data is None:
                save_json_file(self.output_path, {})
                if existed:
                    log_line(f"[STORE] Dataset {self.output_path} was empty; reinitialised")
                else:
                    log_line(f"[STORE] Created new dataset {self.output_path}")
                return
            log_line(f"[STORE] Dataset {self.output_path} is valid ({len(data)} pages)")
        except Exception as exc:  # noqa: BLE001
            log_line(f"[STORE][ERROR] Unable to initialise dataset {self.output_path}: {exc}")
            _scraper_event("error", phase="store", step="initialize", error=str(exc))

    def load(self) -> Dict[str, Any]:
        """Return the current dataset, quarantining it if it cannot be parsed."""

        try:
            return self._read_document() or {}
        except ValueError as exc:
            log_line(f"[STORE] Dataset is invalid ({exc}); starting from empty")
            self.quarantine("corrupt_data")
            return {}

    @staticmethod
    def page_sort_key(key: Any) -> Tuple[int, Any]:
        """Sort numeric page keys numerically, anything else after them."""

        try:
            return 0, int(key)
        except (TypeError, ValueError):
            return 1, str(key)

    def last_page(self) -> Optional[int]:
        """Return the highest page number present in the dataset."""

        pages = []
        for key in self.load():
            try:
                pages.append(int(key))
            except (TypeError, ValueError):
                continue
        return max(pages) if pages else None

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def snapshot_path(self, page_number: int) -> Path:
        return self.backup_dir / f"page_{page_number}_data.json"

    def write_snapshot(self, batch: PageBatch) -> Path:
        path = self.snapshot_path(batch.page_number)
        save_json_file(path, batch.to_json())
        return path

    def merge_and_persist(self, batch: PageBatch) -> None:
        """Store ``batch`` under its page number, replacing any previous entry.

        The raw batch is snapshotted first; then the full document is written
        to a temp sibling and swapped in with ``os.replace``. On failure the
        live document keeps its previous content and ``PersistError`` is
        raised.
        """

        page_number = batch.page_number

        try:
            self.write_snapshot(batch)
            document = self.load()
            document[str(page_number)] = batch.to_json()
            save_json_file(self.output_path, document)
        except Exception as exc:
            log_line(f"[STORE][ERROR] Failed to save page {page_number}: {exc}")
            _scraper_event(
                "error",
                phase="store",
                step="merge",
                page=page_number,
                error=str(exc),
                snapshot=str(self.snapshot_path(page_number)),
            )
            raise PersistError(page_number, f"Failed to save page {page_number}: {exc}") from exc

        log_line(f"[STORE] Saved page {page_number} ({len(batch)} records) to {self.output_path}")


__all__ = ["DatasetStore", "PersistError"]
