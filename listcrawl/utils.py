from __future__ import annotations

import json
import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import config

LOGGER = logging.getLogger("listcrawl")
_LOGGER_INITIALISED = False
_CURRENT_LOG_FILE: Path = config.LOG_FILE


def _configure_logger(log_path: Path) -> None:
    """Configure the shared application logger to write to ``log_path``."""

    global _LOGGER_INITIALISED, _CURRENT_LOG_FILE

    log_path.parent.mkdir(parents=True, exist_ok=True)

    for handler in list(LOGGER.handlers):
        LOGGER.removeHandler(handler)
        try:
            handler.close()
        except Exception:  # noqa: BLE001
            continue

    formatter = logging.Formatter(
        fmt="[%(asctime)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)

    LOGGER.setLevel(logging.INFO)
    LOGGER.addHandler(stream_handler)
    LOGGER.addHandler(file_handler)
    LOGGER.propagate = False

    _CURRENT_LOG_FILE = log_path
    _LOGGER_INITIALISED = True


def _ensure_logger() -> None:
    """Initialise the logger lazily using the default log file."""

    if _LOGGER_INITIALISED:
        return

    _configure_logger(config.LOG_FILE)


def setup_run_logger(log_dir: Path | None = None) -> Path:
    """Rotate to a fresh timestamped log file for the current run."""

    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = Path(log_dir or config.LOG_DIR) / f"scrape_{timestamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Logging to %s", log_path)
    return log_path


def get_current_log_path() -> Path:
    """Return the path to the log file currently receiving log lines."""

    _ensure_logger()
    return _CURRENT_LOG_FILE


def log_line(message: str, *, level: int = logging.INFO) -> None:
    """Write a timestamped log line to stdout and the active log file."""

    _ensure_logger()
    LOGGER.log(level, message)


def ensure_dirs(cfg: config.CrawlConfig) -> None:
    """Ensure the output, backup and data directories for ``cfg`` exist."""

    cfg.data_dir.mkdir(parents=True, exist_ok=True)
    cfg.backup_dir.mkdir(parents=True, exist_ok=True)
    cfg.output_path.parent.mkdir(parents=True, exist_ok=True)


def utc_now_iso() -> str:
    """Return the current UTC time as ISO-8601 with millisecond precision."""

    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def file_timestamp() -> str:
    """Return a filesystem-friendly UTC timestamp down to microseconds."""

    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")


def unique_path(directory: Path, stem: str, suffix: str = ".json") -> Path:
    """Return ``directory/stem + suffix``, adding a counter if it is taken."""

    candidate = directory / f"{stem}{suffix}"
    counter = 1
    while candidate.exists():
        candidate = directory / f"{stem}_{counter}{suffix}"
        counter += 1
    return candidate


def load_json_file(path: Path, default: Any = None) -> Any:
    """Load JSON from ``path`` returning ``default`` when missing or invalid."""

    try:
        with Path(path).open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except (FileNotFoundError, json.JSONDecodeError, UnicodeDecodeError):
        return default


def save_json_file(path: Path, payload: Any) -> None:
    """Persist ``payload`` to ``path`` atomically.

    The JSON is written to a ``.tmp`` sibling, flushed to disk and then moved
    over ``path`` with ``os.replace``, so readers see either the previous file
    or the complete new one. The temp file is removed if anything fails.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")

    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            tmp_path.unlink()
        except FileNotFoundError:
            pass
        raise


def write_error_snapshot(path: Path, exc: BaseException, **context: Any) -> Path | None:
    """Write an error diagnostic (message, type, stack and context) to ``path``.

    Diagnostics are best effort: a failure here is logged, never raised, so
    the error being recorded is not masked by a second one.
    """

    payload = {
        "error": str(exc),
        "error_type": type(exc).__name__,
        "error_code": getattr(exc, "error_code", None),
        "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        "captured_at": utc_now_iso(),
        **context,
    }
    try:
        save_json_file(path, payload)
    except Exception as write_exc:  # noqa: BLE001
        log_line(f"[DIAG][WARN] Unable to write diagnostic {path}: {write_exc}")
        return None
    return Path(path)


__all__ = [
    "setup_run_logger",
    "get_current_log_path",
    "log_line",
    "ensure_dirs",
    "utc_now_iso",
    "file_timestamp",
    "unique_path",
    "load_json_file",
    "save_json_file",
    "write_error_snapshot",
]
