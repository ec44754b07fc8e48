"""Turn a rendered detail page into a flat field-name -> value mapping."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Tuple

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, Tag

from .interaction import OUTER_HTML_SCRIPT, InteractionPort
from .site_selectors import DEFAULT_SELECTORS, DetailSelectors

DUPLICATE_POLICIES = ("last", "first")
_WHITESPACE = re.compile(r"\s+")


def _text(node: Tag) -> str:
    """Rendered-style text: whitespace runs collapse, ``<br>`` starts a new line."""

    parts: List[str] = []
    for child in node.descendants:
        if isinstance(child, Tag):
            if child.name == "br":
                parts.append("\n")
        elif isinstance(child, NavigableString) and not isinstance(child, Comment):
            parts.append(_WHITESPACE.sub(" ", str(child)))
    lines = (line.strip() for line in "".join(parts).split("\n"))
    return "\n".join(lines).strip()


def _collect(pairs: Iterable[Tuple[str, str]], policy: str) -> Dict[str, str]:
    data: Dict[str, str] = {}
    for key, value in pairs:
        if not key:
            continue
        if policy == "first" and key in data:
            continue
        data[key] = value
    return data


def merge_passes(list_fields: Dict[str, str], table_fields: Dict[str, str]) -> Dict[str, str]:
    """Overlay the table pass on the list pass; table values win on collisions."""

    merged = dict(list_fields)
    merged.update(table_fields)
    return merged


class FieldExtractor:
    """Apply the list-block and table passes to a detail page and merge them."""

    def __init__(
        self,
        selectors: DetailSelectors = DEFAULT_SELECTORS,
        *,
        duplicate_policy: str = "last",
    ) -> None:
        if duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate key policy: {duplicate_policy!r}")
        self.selectors = selectors
        self.duplicate_policy = duplicate_policy

    def extract(self, port: InteractionPort) -> Dict[str, str]:
        """Extract the fields of the page currently shown by ``port``."""

        html = port.evaluate_in_page(OUTER_HTML_SCRIPT) or ""
        return self.extract_from_html(html)

    def extract_from_html(self, html: str) -> Dict[str, str]:
        soup = BeautifulSoup(html, "html5lib")
        return merge_passes(self.list_pass(soup), self.table_pass(soup))

    def list_pass(self, soup: BeautifulSoup) -> Dict[str, str]:
        sel = self.selectors

        def pairs() -> Iterable[Tuple[str, str]]:
            for item in soup.select(sel.list_item_selector):
                heading = item.select_one(sel.list_heading_selector)
                value = item.select_one(sel.list_value_selector)
                if heading is None or value is None:
                    continue
                yield _text(heading), _text(value)

        return _collect(pairs(), self.duplicate_policy)

    def table_pass(self, soup: BeautifulSoup) -> Dict[str, str]:
        sel = self.selectors

        def pairs() -> Iterable[Tuple[str, str]]:
            for table in soup.select(sel.table_selector):
                for row in table.select(sel.row_selector):
                    cells = row.select(sel.cell_selector)
                    if len(cells) < 2:
                        continue
                    yield _text(cells[0]), _text(cells[1])

        return _collect(pairs(), self.duplicate_policy)


__all__ = ["FieldExtractor", "merge_passes", "DUPLICATE_POLICIES"]
