"""In-memory stand-in for a paginated list site driven through InteractionPort."""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from listcrawl.config import CrawlConfig, load_config
from listcrawl.interaction import BoundingBox

LIST_URL = "https://example.test/list?page={page}"


def detail_html(list_fields: Dict[str, str], table_fields: Dict[str, str] | None = None) -> str:
    items = "".join(
        f"<li><h6><strong>{html.escape(k)}</strong></h6><div>{html.escape(v)}</div></li>"
        for k, v in list_fields.items()
    )
    rows = "".join(
        f"<tr><td>{html.escape(k)}</td><td>{html.escape(v)}</td></tr>"
        for k, v in (table_fields or {}).items()
    )
    return (
        "<html><body>"
        f"<ul class='list-unstyled'>{items}</ul>"
        f"<table class='table'><tbody>{rows}</tbody></table>"
        "</body></html>"
    )


@dataclass
class FakeItem:
    list_fields: Dict[str, str] = field(default_factory=dict)
    table_fields: Dict[str, str] = field(default_factory=dict)
    click_failures: int = 0
    script_click_failures: int = 0
    click_exception: Optional[Exception] = None
    offscreen: bool = False

    def html(self) -> str:
        return detail_html(self.list_fields, self.table_fields)


@dataclass(frozen=True)
class FakeElement:
    page: int
    index: int
    generation: int


def make_items(page: int, count: int) -> List[FakeItem]:
    return [FakeItem(list_fields={"Name": f"Entity {page}-{i + 1}"}) for i in range(count)]


class FakePort:
    """Simulates list and detail pages.

    Every navigation bumps ``generation``; using an element handle from an
    older generation raises, like a detached DOM node would.
    """

    def __init__(
        self,
        pages: Dict[int, List[FakeItem]],
        *,
        nav_failures: Dict[str, int] | None = None,
    ) -> None:
        self.pages = pages
        self.nav_failures = dict(nav_failures or {})
        self.generation = 0
        self.url = "about:blank"
        self.location: Tuple[str, Any] = ("blank", None)
        self.calls: List[Tuple[str, Any]] = []
        self.closed = False
        self._pending: Optional[FakeElement] = None

    def _go(self, url: str, location: Tuple[str, Any]) -> None:
        self.generation += 1
        self.url = url
        self.location = location

    def _item(self, element: FakeElement) -> FakeItem:
        if element.generation != self.generation:
            raise RuntimeError("Element is not attached to the DOM")
        return self.pages[element.page][element.index]

    def calls_named(self, name: str) -> List[Any]:
        return [detail for call, detail in self.calls if call == name]

    def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None:
        self.calls.append(("navigate", url))
        if self.nav_failures.get(url, 0) > 0:
            self.nav_failures[url] -= 1
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded navigating to {url}")
        page = int(url.rsplit("=", 1)[1])
        self._go(url, ("list", page))

    def query_all(self, selector: str) -> List[FakeElement]:
        kind, page = self.location
        if kind != "list":
            return []
        return [
            FakeElement(page, index, self.generation)
            for index in range(len(self.pages.get(page, [])))
        ]

    def bounding_box(self, element: FakeElement) -> Optional[BoundingBox]:
        item = self._item(element)
        return BoundingBox(x=10.0, y=2000.0 if item.offscreen else 100.0, width=80.0, height=30.0)

    def viewport_size(self) -> Tuple[float, float]:
        return 1280.0, 720.0

    def scroll_into_view(self, element: FakeElement) -> None:
        self._item(element)
        self.calls.append(("scroll", (element.page, element.index)))

    def click(self, element: FakeElement) -> None:
        item = self._item(element)
        self.calls.append(("click", (element.page, element.index)))
        if item.click_failures > 0:
            item.click_failures -= 1
            raise item.click_exception or TimeoutError("Timeout 30000ms exceeded")
        self._pending = element

    def evaluate_in_page(self, script: str, arg: Any = None) -> Any:
        if isinstance(arg, FakeElement):
            item = self._item(arg)
            self.calls.append(("script_click", (arg.page, arg.index)))
            if item.script_click_failures > 0:
                item.script_click_failures -= 1
                raise RuntimeError("script click did not navigate")
            self._pending = arg
            return None
        self.calls.append(("evaluate", script))
        kind, key = self.location
        if kind != "detail":
            return "<html><body></body></html>"
        page, index = key
        return self.pages[page][index].html()

    def wait_for_navigation(
        self, trigger: Callable[[], Any], *, wait_until: str, timeout_ms: int
    ) -> None:
        self._pending = None
        trigger()
        element, self._pending = self._pending, None
        if element is None:
            raise TimeoutError(f"Timeout {timeout_ms}ms exceeded waiting for navigation")
        self._go(
            f"https://example.test/detail/{element.page}-{element.index + 1}",
            ("detail", (element.page, element.index)),
        )

    def current_url(self) -> str:
        return self.url

    def close(self) -> None:
        self.closed = True


def make_config(tmp_path: Path, **overrides: Any) -> CrawlConfig:
    settings: Dict[str, Any] = dict(
        list_url_template=LIST_URL,
        output_path=tmp_path / "data.json",
        backup_dir=tmp_path / "backups",
        data_dir=tmp_path,
        start_page=1,
        max_pages=3,
        items_per_page=20,
        item_delay_seconds=1.0,
        scroll_settle_seconds=0.5,
        list_settle_seconds=1.0,
        page_delay_min_seconds=1.0,
        page_delay_max_seconds=2.0,
        page_load_attempts=3,
        click_attempts=3,
        item_attempts=3,
        retry_delay_seconds=2.0,
        failure_penalty_seconds=4.0,
        nav_timeout_seconds=30,
        duplicate_key_policy="last",
    )
    settings.update(overrides)
    return load_config(**settings)
