"""Interaction port over the rendering engine, plus the Playwright adapter.

Every call is blocking (Playwright sync API). Element handles returned by
``query_all`` belong to the document that was current when they were queried
and must not be used after any navigation.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Protocol, Sequence, Tuple

from playwright.sync_api import ElementHandle, Page, Route, sync_playwright

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

CHROME_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-features=site-per-process",
    "--no-sandbox",
    "--disable-dev-shm-usage",
]

OUTER_HTML_SCRIPT = "() => document.documentElement.outerHTML"
VIEWPORT_SCRIPT = "() => [window.innerWidth, window.innerHeight]"
SCROLL_INTO_VIEW_SCRIPT = "(el) => el.scrollIntoView({behavior: 'smooth', block: 'center'})"
SCRIPT_CLICK = "(el) => el.click()"


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    def inside(self, viewport: Tuple[float, float]) -> bool:
        """Return ``True`` when the box lies fully within ``viewport``."""

        width, height = viewport
        return (
            self.x >= 0
            and self.y >= 0
            and self.x + self.width <= width
            and self.y + self.height <= height
        )


class InteractionPort(Protocol):
    """What the crawler needs from a rendering/interaction engine."""

    def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None: ...

    def query_all(self, selector: str) -> Sequence[Any]: ...

    def bounding_box(self, element: Any) -> Optional[BoundingBox]: ...

    def viewport_size(self) -> Tuple[float, float]: ...

    def scroll_into_view(self, element: Any) -> None: ...

    def click(self, element: Any) -> None: ...

    def evaluate_in_page(self, script: str, arg: Any = None) -> Any: ...

    def wait_for_navigation(
        self, trigger: Callable[[], Any], *, wait_until: str, timeout_ms: int
    ) -> None: ...

    def current_url(self) -> str: ...

    def close(self) -> None: ...


class PlaywrightPort:
    """``InteractionPort`` backed by a Playwright sync ``Page``."""

    def __init__(self, page: Page, *, click_timeout_ms: int = 5000) -> None:
        self._page = page
        self._click_timeout_ms = click_timeout_ms

    def navigate(self, url: str, *, wait_until: str = "networkidle", timeout_ms: int) -> None:
        _scraper_event("nav", step="goto", url=url, wait_until=wait_until)
        self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)

    def query_all(self, selector: str) -> List[ElementHandle]:
        return self._page.query_selector_all(selector)

    def bounding_box(self, element: ElementHandle) -> Optional[BoundingBox]:
        box = element.bounding_box()
        if not box:
            return None
        return BoundingBox(
            x=float(box["x"]),
            y=float(box["y"]),
            width=float(box["width"]),
            height=float(box["height"]),
        )

    def viewport_size(self) -> Tuple[float, float]:
        size = self._page.viewport_size
        if size:
            return float(size["width"]), float(size["height"])
        # Launched without a fixed viewport; ask the window instead.
        width, height = self._page.evaluate(VIEWPORT_SCRIPT)
        return float(width), float(height)

    def scroll_into_view(self, element: ElementHandle) -> None:
        self._page.evaluate(SCROLL_INTO_VIEW_SCRIPT, element)

    def click(self, element: ElementHandle) -> None:
        element.click(timeout=self._click_timeout_ms)

    def evaluate_in_page(self, script: str, arg: Any = None) -> Any:
        if arg is None:
            return self._page.evaluate(script)
        return self._page.evaluate(script, arg)

    def wait_for_navigation(
        self, trigger: Callable[[], Any], *, wait_until: str = "networkidle", timeout_ms: int
    ) -> None:
        with self._page.expect_navigation(wait_until=wait_until, timeout=timeout_ms):
            trigger()

    def current_url(self) -> str:
        return self._page.url

    def close(self) -> None:
        if not self._page.is_closed():
            self._page.close()


def make_request_filter(blocked: Sequence[str]) -> Callable[[Route], None]:
    """Return a route handler aborting requests of the ``blocked`` resource types."""

    blocked_types = frozenset(blocked)

    def _handle(route: Route) -> None:
        if route.request.resource_type in blocked_types:
            route.abort()
        else:
            route.continue_()

    return _handle


@contextmanager
def open_playwright_session(cfg: config.CrawlConfig) -> Iterator[PlaywrightPort]:
    """Launch Chromium, yield a ``PlaywrightPort`` and always close the browser."""

    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=cfg.headless, args=CHROME_ARGS)
        port: Optional[PlaywrightPort] = None
        try:
            context = browser.new_context(
                user_agent=cfg.user_agent,
                locale="en-US",
                viewport={"width": 1368, "height": 900},
            )
            context.add_init_script(
                "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
            )
            page = context.new_page()
            if cfg.blocked_resource_types:
                page.route("**/*", make_request_filter(cfg.blocked_resource_types))
            log_line(f"[SESSION] Browser started (headless={cfg.headless})")
            port = PlaywrightPort(page, click_timeout_ms=cfg.click_timeout_ms)
            yield port
        finally:
            if port is not None:
                try:
                    port.close()
                except Exception as exc:  # noqa: BLE001
                    log_line(f"[SESSION][WARN] Closing page failed: {exc}")
            browser.close()
            log_line("[SESSION] Browser closed")


__all__ = [
    "BoundingBox",
    "InteractionPort",
    "PlaywrightPort",
    "make_request_filter",
    "open_playwright_session",
    "OUTER_HTML_SCRIPT",
    "SCRIPT_CLICK",
]
