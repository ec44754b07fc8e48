"""Crawl a paginated list site page by page, one detail page per entity.

Workflow:

- Open ``list_url_template`` for each page from ``start_page`` to
  ``max_pages``.
- Click every "details" trigger on the page (re-opening the list page
  between items), read the detail page fields, and return to the list.
- Snapshot each page's records, merge them into the dataset JSON atomically,
  and stop as soon as a page lists no entities.

Pages that fail are logged, written to a diagnostic file and skipped; the
run carries on with the next page.
"""

from __future__ import annotations

import argparse
import random
import time
from contextlib import AbstractContextManager
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import config
from .config import CrawlConfig, load_config
from .config_validation import validate_config
from .dataset_store import DatasetStore
from .field_extractor import FieldExtractor
from .interaction import InteractionPort, open_playwright_session
from .item_collector import ItemCollector
from .logging_utils import _scraper_event
from .page_collector import PageCollector
from .utils import (
    ensure_dirs,
    log_line,
    save_json_file,
    setup_run_logger,
    utc_now_iso,
    write_error_snapshot,
)

STOP_EMPTY_PAGE = "empty_page"
STOP_MAX_PAGES = "max_pages"

SessionFactory = Callable[[CrawlConfig], AbstractContextManager]


@dataclass
class RunSummary:
    start_page: int
    max_pages: int
    total_items: int = 0
    pages_saved: List[int] = field(default_factory=list)
    failed_pages: List[int] = field(default_factory=list)
    stop_reason: str = STOP_MAX_PAGES
    last_page_visited: Optional[int] = None
    started_at: str = field(default_factory=utc_now_iso)
    ended_at: Optional[str] = None


class CrawlOrchestrator:
    """Walk the list pages in order and persist each page's batch."""

    def __init__(
        self,
        cfg: CrawlConfig,
        page_collector: PageCollector,
        store: DatasetStore,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cfg = cfg
        self.page_collector = page_collector
        self.store = store
        self._sleep = sleep
        self._rng = rng or random.Random()

    def page_error_path(self, page_number: int) -> Path:
        return self.cfg.backup_dir / f"page_{page_number}_error.json"

    def run(self) -> RunSummary:
        cfg = self.cfg
        summary = RunSummary(start_page=cfg.start_page, max_pages=cfg.max_pages)
        self.store.initialize()

        for current_page in range(cfg.start_page, cfg.max_pages + 1):
            summary.last_page_visited = current_page
            log_line(f"--- Processing page {current_page}/{cfg.max_pages} ---")

            try:
                batch = self.page_collector.collect(current_page)
                if not batch and not batch.aborted:
                    log_line(f"[RUN] Page {current_page} has no items; stopping.")
                    summary.stop_reason = STOP_EMPTY_PAGE
                    break
                if batch:
                    self.store.merge_and_persist(batch)
            except Exception as exc:  # noqa: BLE001
                summary.failed_pages.append(current_page)
                log_line(f"[RUN][ERROR] Page {current_page} failed: {exc}")
                _scraper_event(
                    "error",
                    phase="run",
                    page=current_page,
                    error=str(exc),
                    error_code=getattr(exc, "error_code", None),
                )
                write_error_snapshot(self.page_error_path(current_page), exc, page=current_page)
                self._pause(cfg.failure_penalty_seconds)
                continue

            if batch:
                summary.total_items += len(batch)
                summary.pages_saved.append(current_page)
            if batch.aborted:
                # Partial records are kept, but the page still counts as failed.
                summary.failed_pages.append(current_page)
                log_line(
                    f"[RUN][ERROR] Page {current_page} aborted after {len(batch)} items; "
                    f"details in {self.page_collector.error_details_path(current_page)}"
                )
                self._pause(cfg.failure_penalty_seconds)
                continue

            log_line(f"[RUN] Collected {len(batch)} items from page {current_page}")

            if current_page < cfg.max_pages:
                self._pause(
                    self._rng.uniform(cfg.page_delay_min_seconds, cfg.page_delay_max_seconds)
                )

        summary.ended_at = utc_now_iso()
        log_line("=== Crawl finished ===")
        log_line(f"Total items collected: {summary.total_items}")
        if summary.failed_pages:
            log_line(f"Failed pages: {', '.join(str(p) for p in summary.failed_pages)}")
        _scraper_event("state", phase="run", kind="summary", **asdict(summary))
        return summary

    def _pause(self, seconds: float) -> None:
        if seconds and seconds > 0:
            self._sleep(seconds)


def build_orchestrator(
    port: InteractionPort,
    cfg: CrawlConfig,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
) -> CrawlOrchestrator:
    """Wire extractor, collectors and store around one interaction port."""

    extractor = FieldExtractor(cfg.selectors, duplicate_policy=cfg.duplicate_key_policy)
    item_collector = ItemCollector(port, cfg, extractor, sleep=sleep)
    page_collector = PageCollector(port, cfg, item_collector, sleep=sleep)
    store = DatasetStore(cfg.output_path, cfg.backup_dir)
    return CrawlOrchestrator(cfg, page_collector, store, sleep=sleep, rng=rng)


def resume_config(cfg: CrawlConfig) -> CrawlConfig:
    """Start after the highest page already present in the dataset."""

    store = DatasetStore(cfg.output_path, cfg.backup_dir)
    store.initialize()
    last_page = store.last_page()
    if last_page is None:
        return cfg
    log_line(f"[RUN] Resuming after page {last_page}")
    return replace(cfg, start_page=max(cfg.start_page, last_page + 1))


def save_summary(cfg: CrawlConfig, summary: RunSummary) -> None:
    try:
        save_json_file(cfg.summary_path, asdict(summary))
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN][WARN] Unable to write run summary {cfg.summary_path}: {exc}")


def run_crawl(
    cfg: CrawlConfig,
    *,
    session_factory: SessionFactory = open_playwright_session,
    sleep: Callable[[float], None] = time.sleep,
    rng: Optional[random.Random] = None,
    resume: bool = False,
) -> RunSummary:
    """Run a full crawl; the interaction session is always released."""

    ensure_dirs(cfg)
    if resume:
        cfg = resume_config(cfg)
        if cfg.start_page > cfg.max_pages:
            log_line("[RUN] Dataset already covers max_pages; nothing to do.")
            summary = RunSummary(start_page=cfg.start_page, max_pages=cfg.max_pages)
            summary.ended_at = utc_now_iso()
            save_summary(cfg, summary)
            return summary

    log_line(f"[RUN] Starting crawl of {cfg.list_url_template} pages {cfg.start_page}-{cfg.max_pages}")
    try:
        with session_factory(cfg) as port:
            summary = build_orchestrator(port, cfg, sleep=sleep, rng=rng).run()
    except Exception as exc:
        log_line(f"[RUN][FATAL] Crawl aborted: {exc}")
        _scraper_event("error", phase="run", kind="fatal", error=str(exc))
        raise

    save_summary(cfg, summary)
    return summary


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Crawl list pages and their detail pages")
    parser.add_argument("--start-page", type=int, default=None)
    parser.add_argument("--max-pages", type=int, default=None)
    parser.add_argument("--items-per-page", type=int, default=None)
    parser.add_argument("--output", dest="output_path", default=None)
    parser.add_argument("--backup-dir", default=None)
    parser.add_argument("--list-url", dest="list_url_template", default=None)
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window instead of running headless.",
    )
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Start after the last page already present in the dataset.",
    )
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    session_factory: SessionFactory = open_playwright_session,
) -> int:
    """CLI entry point; returns the process exit code."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    cfg = load_config(
        start_page=args.start_page,
        max_pages=args.max_pages,
        items_per_page=args.items_per_page,
        output_path=args.output_path,
        backup_dir=args.backup_dir,
        list_url_template=args.list_url_template,
        headless=False if args.headed else None,
    )
    try:
        validate_config(cfg, "cli")
    except ValueError as exc:
        parser.error(str(exc))

    setup_run_logger(config.LOG_DIR)
    try:
        run_crawl(cfg, session_factory=session_factory, resume=args.resume)
    except Exception:  # noqa: BLE001
        return 1
    return 0


__all__ = [
    "CrawlOrchestrator",
    "RunSummary",
    "build_orchestrator",
    "run_crawl",
    "main",
]


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
