from __future__ import annotations

from pathlib import Path

import pytest

from listcrawl.field_extractor import FieldExtractor
from listcrawl.item_collector import (
    COLLECTED_AT_FIELD,
    PAGE_FIELD,
    POSITION_FIELD,
    URL_FIELD,
    ItemCollector,
    ItemNavigationError,
)
from tests.fake_site import LIST_URL, FakeItem, FakePort, make_config, make_items


def _collector(port: FakePort, tmp_path: Path, sleeps: list, **overrides) -> ItemCollector:
    cfg = make_config(tmp_path, **overrides)
    return ItemCollector(port, cfg, FieldExtractor(cfg.selectors), sleep=sleeps.append)


def test_collect_builds_record_with_provenance(tmp_path: Path) -> None:
    port = FakePort(
        {1: [FakeItem(list_fields={"Name": "Pharma A", "URL": "spoofed"}, table_fields={"Tax code": "123"})]}
    )
    sleeps: list[float] = []
    collector = _collector(port, tmp_path, sleeps)

    record = collector.collect(1, 0)

    assert record is not None
    assert list(record)[:4] == [URL_FIELD, PAGE_FIELD, POSITION_FIELD, COLLECTED_AT_FIELD]
    assert record[URL_FIELD] == "https://example.test/detail/1-1"
    assert record[PAGE_FIELD] == 1
    assert record[POSITION_FIELD] == 1
    assert record[COLLECTED_AT_FIELD].endswith("Z")
    assert record["Name"] == "Pharma A"
    assert record["Tax code"] == "123"
    with pytest.raises(TypeError):
        record["Name"] = "changed"  # type: ignore[index]


def test_collect_renavigates_unless_list_is_fresh(tmp_path: Path) -> None:
    port = FakePort({1: make_items(1, 2)})
    sleeps: list[float] = []
    collector = _collector(port, tmp_path, sleeps)

    port.navigate(LIST_URL.format(page=1), wait_until="networkidle", timeout_ms=1000)
    collector.notify_list_loaded()
    assert collector.collect(1, 0) is not None
    assert port.calls_named("navigate") == [LIST_URL.format(page=1)]

    # The detail navigation invalidated every handle; the next item must reopen
    # the list page before touching a trigger.
    assert collector.collect(1, 1) is not None
    assert port.calls_named("navigate") == [LIST_URL.format(page=1)] * 2
    assert 1.0 in sleeps


def test_collect_returns_none_when_page_shrank(tmp_path: Path) -> None:
    port = FakePort({1: make_items(1, 1)})
    collector = _collector(port, tmp_path, [])

    assert collector.collect(1, 4) is None
    assert port.calls_named("click") == []


def test_offscreen_trigger_is_scrolled_into_view(tmp_path: Path) -> None:
    port = FakePort({1: [FakeItem(list_fields={"Name": "Far"}, offscreen=True)]})
    sleeps: list[float] = []
    collector = _collector(port, tmp_path, sleeps, scroll_settle_seconds=0.5)

    collector.collect(1, 0)

    assert port.calls_named("scroll") == [(1, 0)]
    assert 0.5 in sleeps


def test_visible_trigger_is_not_scrolled(tmp_path: Path) -> None:
    port = FakePort({1: make_items(1, 1)})
    collector = _collector(port, tmp_path, [])

    collector.collect(1, 0)

    assert port.calls_named("scroll") == []


def test_click_retry_succeeds_without_fallback(tmp_path: Path) -> None:
    port = FakePort({1: [FakeItem(list_fields={"Name": "A"}, click_failures=1)]})
    sleeps: list[float] = []
    collector = _collector(port, tmp_path, sleeps)

    record = collector.collect(1, 0)

    assert record is not None
    assert len(port.calls_named("click")) == 2
    assert port.calls_named("script_click") == []
    assert 2.0 in sleeps


def test_script_click_fallback_after_penultimate_attempt(tmp_path: Path) -> None:
    port = FakePort({1: [FakeItem(list_fields={"Name": "Behind overlay"}, click_failures=5)]})
    collector = _collector(port, tmp_path, [], click_attempts=3)

    record = collector.collect(1, 0)

    assert record is not None
    assert record["Name"] == "Behind overlay"
    assert len(port.calls_named("click")) == 2
    assert port.calls_named("script_click") == [(1, 0)]


def test_click_exhaustion_raises_item_navigation_error(tmp_path: Path) -> None:
    port = FakePort(
        {1: [FakeItem(list_fields={"Name": "Stuck"}, click_failures=10, script_click_failures=10)]}
    )
    collector = _collector(port, tmp_path, [], click_attempts=3)

    with pytest.raises(ItemNavigationError) as excinfo:
        collector.collect(1, 0)

    assert excinfo.value.item_index == 0
    assert excinfo.value.error_code == "click_navigation_exhausted"
    assert len(port.calls_named("click")) == 3
    assert len(port.calls_named("script_click")) == 1


def test_single_click_attempt_has_no_fallback(tmp_path: Path) -> None:
    port = FakePort({1: [FakeItem(click_failures=1)]})
    collector = _collector(port, tmp_path, [], click_attempts=1)

    with pytest.raises(ItemNavigationError):
        collector.collect(1, 0)

    assert port.calls_named("script_click") == []


def test_closed_session_is_not_retried(tmp_path: Path) -> None:
    port = FakePort(
        {1: [FakeItem(click_failures=3, click_exception=RuntimeError("Target closed"))]}
    )
    collector = _collector(port, tmp_path, [])

    with pytest.raises(RuntimeError, match="Target closed"):
        collector.collect(1, 0)

    assert len(port.calls_named("click")) == 1
