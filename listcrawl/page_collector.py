"""Collect every entity listed on one list page."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, List, Optional

from .config import CrawlConfig
from .error_codes import ErrorCode, ScrapeError
from .interaction import InteractionPort
from .item_collector import ItemCollector
from .logging_utils import _scraper_event
from .models import PageBatch, Record
from .retry_policy import NON_RETRYABLE_ERROR_CODES, classify_error, decide_retry
from .utils import log_line, write_error_snapshot


class PageLoadError(ScrapeError):
    """The list page could not be loaded within the configured attempts."""

    def __init__(self, page_number: int, attempts: int, message: str) -> None:
        super().__init__(
            ErrorCode.PAGE_LOAD,
            f"Could not load page {page_number} after {attempts} attempts: {message}",
        )
        self.page_number = page_number
        self.attempts = attempts


class PageCollector:
    def __init__(
        self,
        port: InteractionPort,
        cfg: CrawlConfig,
        item_collector: ItemCollector,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.port = port
        self.cfg = cfg
        self.item_collector = item_collector
        self._sleep = sleep

    def collect(self, page_number: int) -> PageBatch:
        """Return the batch for ``page_number``; empty when the page lists nothing.

        Raises ``PageLoadError`` if the list page never loads. Failures after
        that point are contained: a failing item is dropped (with a diagnostic
        file), and anything else aborts the page: the batch is marked
        ``aborted`` and keeps the records gathered so far.
        """

        self._load_list_page(page_number)

        triggers = self.port.query_all(self.cfg.selectors.trigger_selector)
        log_line(f"[PAGE] Found {len(triggers)} items on page {page_number}")
        if not triggers:
            return PageBatch(page_number=page_number)

        item_count = min(len(triggers), self.cfg.items_per_page)
        self.item_collector.notify_list_loaded()

        records: List[Record] = []
        aborted = False
        try:
            for item_index in range(item_count):
                log_line(f"[PAGE] Item {item_index + 1}/{item_count} on page {page_number}")
                record = self._collect_item(page_number, item_index)
                if record is not None:
                    records.append(record)
                self._pause(self.cfg.item_delay_seconds)
        except Exception as exc:  # noqa: BLE001
            aborted = True
            path = write_error_snapshot(
                self.error_details_path(page_number),
                exc,
                page=page_number,
                collected=len(records),
            )
            log_line(
                f"[PAGE][ERROR] Page {page_number} aborted after {len(records)} records: "
                f"{exc} (details: {path})"
            )
            _scraper_event(
                "error",
                phase="page",
                step="item_loop",
                page=page_number,
                error=str(exc),
                collected=len(records),
            )

        return PageBatch(page_number=page_number, records=tuple(records), aborted=aborted)

    def error_details_path(self, page_number: int) -> Path:
        return self.cfg.backup_dir / f"page_{page_number}_error_details.json"

    def item_error_path(self, page_number: int, position: int) -> Path:
        return self.cfg.backup_dir / f"page_{page_number}_item_{position}_error.json"

    def _load_list_page(self, page_number: int) -> None:
        url = self.cfg.list_url(page_number)
        max_attempts = max(1, self.cfg.page_load_attempts)

        for attempt in range(1, max_attempts + 1):
            try:
                self.port.navigate(
                    url, wait_until="networkidle", timeout_ms=self.cfg.nav_timeout_ms
                )
                return
            except Exception as exc:  # noqa: BLE001
                code = classify_error(exc)
                log_line(
                    f"[PAGE] Loading page {page_number} failed, attempt {attempt}/{max_attempts}: {exc}"
                )
                will_retry = decide_retry(attempt, max_attempts, exc, error_code=code, scope="page_load")
                if not will_retry:
                    if code in NON_RETRYABLE_ERROR_CODES:
                        raise
                    raise PageLoadError(page_number, attempt, str(exc)) from exc
                self._pause(self.cfg.retry_delay_seconds)

    def _collect_item(self, page_number: int, item_index: int) -> Optional[Record]:
        max_attempts = max(1, self.cfg.item_attempts)
        position = item_index + 1

        for attempt in range(1, max_attempts + 1):
            try:
                return self.item_collector.collect(page_number, item_index)
            except Exception as exc:  # noqa: BLE001
                code = classify_error(exc)
                log_line(
                    f"[PAGE] Item {position} on page {page_number} failed, "
                    f"attempt {attempt}/{max_attempts}: {exc}"
                )
                will_retry = decide_retry(attempt, max_attempts, exc, error_code=code, scope="item")
                if code in NON_RETRYABLE_ERROR_CODES:
                    raise
                if will_retry:
                    self._pause(self.cfg.retry_delay_seconds)
                    continue

                write_error_snapshot(
                    self.item_error_path(page_number, position),
                    exc,
                    page=page_number,
                    item_index=item_index,
                    position=position,
                    attempts=attempt,
                )
                _scraper_event(
                    "error",
                    phase="item",
                    step="skipped",
                    page=page_number,
                    position=position,
                    error_code=code,
                    attempts=attempt,
                )
        return None

    def _pause(self, seconds: float) -> None:
        if seconds and seconds > 0:
            self._sleep(seconds)


__all__ = ["PageCollector", "PageLoadError"]
