"""Collect one entity: list page trigger -> detail page -> record."""

from __future__ import annotations

import time
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from .config import CrawlConfig
from .error_codes import ErrorCode, ScrapeError
from .field_extractor import FieldExtractor
from .interaction import SCRIPT_CLICK, InteractionPort
from .logging_utils import _scraper_event
from .models import Record
from .retry_policy import NON_RETRYABLE_ERROR_CODES, classify_error, decide_retry
from .utils import log_line, utc_now_iso

URL_FIELD = "URL"
PAGE_FIELD = "Page"
POSITION_FIELD = "Position"
COLLECTED_AT_FIELD = "Collected At"


class ItemNavigationError(ScrapeError):
    """Clicking through to a detail page failed on every attempt."""

    def __init__(self, page_number: int, item_index: int, attempts: int) -> None:
        super().__init__(
            ErrorCode.CLICK_NAVIGATION,
            f"Could not open item {item_index + 1} on page {page_number} "
            f"after {attempts} attempts",
        )
        self.page_number = page_number
        self.item_index = item_index
        self.attempts = attempts


def build_record(
    fields: Mapping[str, str],
    *,
    url: str,
    page_number: int,
    position: int,
    collected_at: str,
) -> Record:
    """Combine extracted fields with provenance; provenance keys win and lead."""

    record: Dict[str, Any] = {
        URL_FIELD: url,
        PAGE_FIELD: page_number,
        POSITION_FIELD: position,
        COLLECTED_AT_FIELD: collected_at,
    }
    for key, value in fields.items():
        if key not in record:
            record[key] = value
    return MappingProxyType(record)


class ItemCollector:
    """Drive a single entity's extraction on the bound ``InteractionPort``.

    Element handles die with the document they came from. The collector
    therefore only reuses the list page as-is right after the page collector
    loaded it (signalled by ``notify_list_loaded``); every other call reopens
    the list page and queries the triggers again before touching them.
    """

    def __init__(
        self,
        port: InteractionPort,
        cfg: CrawlConfig,
        extractor: FieldExtractor,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.port = port
        self.cfg = cfg
        self.extractor = extractor
        self._sleep = sleep
        self._list_is_fresh = False

    def notify_list_loaded(self) -> None:
        """Mark the list page as freshly loaded with no navigation since."""

        self._list_is_fresh = True

    def collect(self, page_number: int, item_index: int) -> Optional[Record]:
        """Return the record for ``item_index`` (0-based), or ``None`` if absent."""

        fresh, self._list_is_fresh = self._list_is_fresh, False
        if not fresh:
            self.port.navigate(
                self.cfg.list_url(page_number),
                wait_until="networkidle",
                timeout_ms=self.cfg.nav_timeout_ms,
            )
            self._pause(self.cfg.list_settle_seconds)

        triggers = self.port.query_all(self.cfg.selectors.trigger_selector)
        if item_index >= len(triggers):
            log_line(
                f"[ITEM] No trigger for item {item_index + 1} on page {page_number} "
                f"({len(triggers)} found); skipping"
            )
            return None

        trigger = triggers[item_index]
        self._ensure_visible(trigger)
        self._open_detail(trigger, page_number, item_index)

        detail_url = self.port.current_url()
        fields = self.extractor.extract(self.port)
        _scraper_event(
            "item",
            page=page_number,
            position=item_index + 1,
            url=detail_url,
            field_count=len(fields),
        )
        return build_record(
            fields,
            url=detail_url,
            page_number=page_number,
            position=item_index + 1,
            collected_at=utc_now_iso(),
        )

    def _ensure_visible(self, trigger: Any) -> None:
        box = self.port.bounding_box(trigger)
        if box is not None and box.inside(self.port.viewport_size()):
            return
        self.port.scroll_into_view(trigger)
        self._pause(self.cfg.scroll_settle_seconds)

    def _open_detail(self, trigger: Any, page_number: int, item_index: int) -> None:
        max_attempts = max(1, self.cfg.click_attempts)
        timeout_ms = self.cfg.nav_timeout_ms

        for attempt in range(1, max_attempts + 1):
            try:
                self.port.wait_for_navigation(
                    lambda: self.port.click(trigger),
                    wait_until="networkidle",
                    timeout_ms=timeout_ms,
                )
                return
            except Exception as exc:  # noqa: BLE001
                code = classify_error(exc)
                log_line(
                    f"[ITEM] Click on item {item_index + 1} (page {page_number}) failed, "
                    f"attempt {attempt}/{max_attempts}: {exc}"
                )
                will_retry = decide_retry(attempt, max_attempts, exc, error_code=code, scope="click")
                if code in NON_RETRYABLE_ERROR_CODES:
                    raise
                if not will_retry:
                    break

            # Overlays can swallow native clicks; one script-driven click before
            # the final attempt.
            if attempt == max_attempts - 1:
                try:
                    self.port.wait_for_navigation(
                        lambda: self.port.evaluate_in_page(SCRIPT_CLICK, trigger),
                        wait_until="networkidle",
                        timeout_ms=timeout_ms,
                    )
                    _scraper_event(
                        "item", step="script_click_ok", page=page_number, position=item_index + 1
                    )
                    return
                except Exception as exc:  # noqa: BLE001
                    log_line(f"[ITEM] Script click on item {item_index + 1} failed: {exc}")
                    if classify_error(exc) in NON_RETRYABLE_ERROR_CODES:
                        raise

            self._pause(self.cfg.retry_delay_seconds)

        _scraper_event(
            "error",
            phase="item",
            error=ErrorCode.CLICK_NAVIGATION,
            page=page_number,
            position=item_index + 1,
            attempts=max_attempts,
        )
        raise ItemNavigationError(page_number, item_index, max_attempts)

    def _pause(self, seconds: float) -> None:
        if seconds and seconds > 0:
            self._sleep(seconds)


__all__ = [
    "ItemCollector",
    "ItemNavigationError",
    "build_record",
    "URL_FIELD",
    "PAGE_FIELD",
    "POSITION_FIELD",
    "COLLECTED_AT_FIELD",
]
