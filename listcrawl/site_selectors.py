"""Selectors for the list page triggers and the detail page field blocks."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DetailSelectors:
    """Site-specific selector hints.

    The list page exposes one "details" button per entity inside the table
    body. Detail pages render their fields either as ``<li>`` blocks with a
    bold heading and a value ``<div>``, or as two-column table rows; both are
    read and merged.
    """

    trigger_selector: str = "tbody .btn-info"
    list_item_selector: str = ".list-unstyled li"
    list_heading_selector: str = "h6 strong"
    list_value_selector: str = "div"
    table_selector: str = "table.table"
    row_selector: str = "tr"
    cell_selector: str = "td"


DEFAULT_SELECTORS = DetailSelectors()

__all__ = [
    "DetailSelectors",
    "DEFAULT_SELECTORS",
]
