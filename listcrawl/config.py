"""Configuration for the list/detail crawler.

Defaults come from environment variables so containers and CI can tune a run
without code changes. Components never read these module constants directly:
``load_config`` snapshots them into an immutable ``CrawlConfig`` that is passed
to each component at construction.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Tuple

from .site_selectors import DEFAULT_SELECTORS, DetailSelectors

DATA_DIR: Path = Path(os.getenv("LISTCRAWL_DATA_DIR", "data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
OUTPUT_FILE: Path = Path(os.getenv("LISTCRAWL_OUTPUT_FILE", str(DATA_DIR / "data.json")))
BACKUP_DIR: Path = Path(os.getenv("LISTCRAWL_BACKUP_DIR", str(DATA_DIR / "backups")))
SUMMARY_FILE: Path = DATA_DIR / "last_summary.json"
EXPORTS_DIR: Path = DATA_DIR / "exports"

LIST_URL_TEMPLATE: str = os.getenv(
    "LISTCRAWL_LIST_URL",
    "https://drugbank.vn/danh-sach/co-so-phan-phoi?page={page}",
)

UA: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36"
)


def _parse_int(env_var: str, default: int, *, minimum: int | None = None) -> int:
    """Parse an integer from the environment, falling back on bad input."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    if minimum is not None:
        value = max(minimum, value)
    return value


def _parse_float(env_var: str, default: float) -> float:
    try:
        return float(os.getenv(env_var, str(default)))
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


START_PAGE: int = _parse_int("LISTCRAWL_START_PAGE", 1)
MAX_PAGES: int = _parse_int("LISTCRAWL_MAX_PAGES", 55)
ITEMS_PER_PAGE: int = _parse_int("LISTCRAWL_ITEMS_PER_PAGE", 20)

# Pacing (seconds)
ITEM_DELAY_SECONDS: float = _parse_float("LISTCRAWL_ITEM_DELAY_SECONDS", 1.0)
SCROLL_SETTLE_SECONDS: float = _parse_float("LISTCRAWL_SCROLL_SETTLE_SECONDS", 0.5)
# Pause after re-opening the list page before re-querying trigger elements.
LIST_SETTLE_SECONDS: float = _parse_float("LISTCRAWL_LIST_SETTLE_SECONDS", 1.0)
PAGE_DELAY_MIN_SECONDS: float = _parse_float("LISTCRAWL_PAGE_DELAY_MIN_SECONDS", 1.0)
PAGE_DELAY_MAX_SECONDS: float = _parse_float("LISTCRAWL_PAGE_DELAY_MAX_SECONDS", 2.0)

# Retry knobs
PAGE_LOAD_ATTEMPTS: int = _parse_int("LISTCRAWL_PAGE_LOAD_ATTEMPTS", 3)
CLICK_ATTEMPTS: int = _parse_int("LISTCRAWL_CLICK_ATTEMPTS", 3)
ITEM_ATTEMPTS: int = _parse_int("LISTCRAWL_ITEM_ATTEMPTS", 3)
RETRY_DELAY_SECONDS: float = _parse_float("LISTCRAWL_RETRY_DELAY_SECONDS", 2.0)
FAILURE_PENALTY_SECONDS: float = _parse_float(
    "LISTCRAWL_FAILURE_PENALTY_SECONDS", RETRY_DELAY_SECONDS * 2
)

# Playwright timeouts. Navigation is in seconds, click stays in milliseconds to
# match the Playwright API.
NAV_TIMEOUT_SECONDS: int = _parse_int("LISTCRAWL_NAV_TIMEOUT_SECONDS", 30, minimum=1)
CLICK_TIMEOUT_MS: int = _parse_int("LISTCRAWL_CLICK_TIMEOUT_MS", 5000)

HEADLESS: bool = _parse_bool("LISTCRAWL_HEADLESS", True)
BLOCKED_RESOURCE_TYPES: Tuple[str, ...] = tuple(
    part.strip()
    for part in os.getenv("LISTCRAWL_BLOCKED_RESOURCES", "image,stylesheet,font,media").split(",")
    if part.strip()
)
DUPLICATE_KEY_POLICY: str = (
    os.getenv("LISTCRAWL_DUPLICATE_KEYS", "last").strip().lower() or "last"
)


@dataclass(frozen=True)
class CrawlConfig:
    """Immutable run configuration shared by every crawler component."""

    list_url_template: str = LIST_URL_TEMPLATE
    output_path: Path = OUTPUT_FILE
    backup_dir: Path = BACKUP_DIR
    data_dir: Path = DATA_DIR
    summary_path: Path = SUMMARY_FILE
    start_page: int = 1
    max_pages: int = 55
    items_per_page: int = 20
    item_delay_seconds: float = 1.0
    scroll_settle_seconds: float = 0.5
    list_settle_seconds: float = 1.0
    page_delay_min_seconds: float = 1.0
    page_delay_max_seconds: float = 2.0
    page_load_attempts: int = 3
    click_attempts: int = 3
    item_attempts: int = 3
    retry_delay_seconds: float = 2.0
    failure_penalty_seconds: float = 4.0
    nav_timeout_seconds: int = 30
    click_timeout_ms: int = 5000
    headless: bool = True
    user_agent: str = UA
    blocked_resource_types: Tuple[str, ...] = ("image", "stylesheet", "font", "media")
    duplicate_key_policy: str = "last"
    selectors: DetailSelectors = field(default=DEFAULT_SELECTORS)

    @property
    def nav_timeout_ms(self) -> int:
        return self.nav_timeout_seconds * 1000

    def list_url(self, page_number: int) -> str:
        """Return the list page URL for ``page_number``."""

        return self.list_url_template.format(page=page_number)


def load_config(**overrides: Any) -> CrawlConfig:
    """Snapshot the module-level settings into a ``CrawlConfig``.

    Values are read at call time so tests (and the CLI) can adjust the module
    constants before building a config. ``None`` overrides are ignored.
    """

    base = CrawlConfig(
        list_url_template=LIST_URL_TEMPLATE,
        output_path=Path(OUTPUT_FILE),
        backup_dir=Path(BACKUP_DIR),
        data_dir=Path(DATA_DIR),
        summary_path=Path(SUMMARY_FILE),
        start_page=START_PAGE,
        max_pages=MAX_PAGES,
        items_per_page=ITEMS_PER_PAGE,
        item_delay_seconds=ITEM_DELAY_SECONDS,
        scroll_settle_seconds=SCROLL_SETTLE_SECONDS,
        list_settle_seconds=LIST_SETTLE_SECONDS,
        page_delay_min_seconds=PAGE_DELAY_MIN_SECONDS,
        page_delay_max_seconds=PAGE_DELAY_MAX_SECONDS,
        page_load_attempts=PAGE_LOAD_ATTEMPTS,
        click_attempts=CLICK_ATTEMPTS,
        item_attempts=ITEM_ATTEMPTS,
        retry_delay_seconds=RETRY_DELAY_SECONDS,
        failure_penalty_seconds=FAILURE_PENALTY_SECONDS,
        nav_timeout_seconds=NAV_TIMEOUT_SECONDS,
        click_timeout_ms=CLICK_TIMEOUT_MS,
        headless=HEADLESS,
        user_agent=UA,
        blocked_resource_types=BLOCKED_RESOURCE_TYPES,
        duplicate_key_policy=DUPLICATE_KEY_POLICY,
        selectors=DEFAULT_SELECTORS,
    )
    changes = {key: value for key, value in overrides.items() if value is not None}
    for key in ("output_path", "backup_dir", "data_dir", "summary_path"):
        if key in changes:
            changes[key] = Path(changes[key])
    if "data_dir" in changes and "summary_path" not in changes:
        changes["summary_path"] = changes["data_dir"] / "last_summary.json"
    return replace(base, **changes) if changes else base


__all__ = ["CrawlConfig", "load_config"]
