from __future__ import annotations

from pathlib import Path

import pytest

from listcrawl import config, utils


@pytest.fixture(autouse=True)
def _temp_log_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    log_dir = tmp_path / "logs"
    monkeypatch.setattr(config, "LOG_DIR", log_dir)
    monkeypatch.setattr(config, "LOG_FILE", log_dir / "latest.log")
    monkeypatch.setattr(utils, "_LOGGER_INITIALISED", False)
