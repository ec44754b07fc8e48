from __future__ import annotations

import dataclasses

import pytest

from listcrawl import site_selectors
from listcrawl.config import load_config


def test_default_selectors() -> None:
    selectors = site_selectors.DEFAULT_SELECTORS

    assert selectors.trigger_selector == "tbody .btn-info"
    assert selectors.list_item_selector.endswith(" li")
    assert selectors.list_heading_selector == "h6 strong"
    assert selectors.table_selector == "table.table"
    assert load_config().selectors is selectors


def test_selectors_are_immutable() -> None:
    with pytest.raises(dataclasses.FrozenInstanceError):
        site_selectors.DEFAULT_SELECTORS.trigger_selector = "a"  # type: ignore[misc]
