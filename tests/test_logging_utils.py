import logging

from listcrawl import logging_utils, utils


def test_scraper_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg, **_: events.append(msg))

    logging_utils._scraper_event("state", phase="retry_decision", kind="capped")

    assert events
    line = events[-1]
    assert line.startswith("[SCRAPER][STATE]")
    assert "phase='retry_decision'" in line
    assert "kind='capped'" in line


def test_scraper_event_phase_only(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg, **_: events.append(msg))

    logging_utils._scraper_event(phase="store", step="merge")

    assert events == ["[SCRAPER][STORE] step='merge'"]


def test_log_line_writes_run_log(tmp_path):
    log_path = utils.setup_run_logger(tmp_path / "logs")

    utils.log_line("[RUN] hello")

    assert utils.get_current_log_path() == log_path
    assert log_path.name.startswith("scrape_")
    assert "[RUN] hello" in log_path.read_text(encoding="utf-8")


def test_scraper_event_levels_and_truncation(monkeypatch):
    lines: list[tuple[str, int]] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg, level: lines.append((msg, level)))

    logging_utils._scraper_event("error", phase="item", stack="x" * 1000)
    logging_utils._scraper_event("item", position=1)

    (error_line, error_level), (item_line, item_level) = lines
    assert error_level == logging.ERROR
    assert item_level == logging.INFO
    assert error_line.endswith("...")
    assert len(error_line) < 400
    assert item_line == "[SCRAPER][ITEM] position=1"
