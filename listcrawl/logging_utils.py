from __future__ import annotations

import logging
from typing import Any

from .utils import log_line

# Labels that should stand out in the run log.
_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
}
_MAX_VALUE_CHARS = 300


def _render(value: Any) -> str:
    text = repr(value)
    if len(text) > _MAX_VALUE_CHARS:
        return text[: _MAX_VALUE_CHARS - 3] + "..."
    return text


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit one ``[SCRAPER][LABEL] key=value, ...`` line.

    ``phase`` doubles as the label when no label is given; otherwise it is
    recorded as a field. Keys are sorted so lines diff cleanly between runs.
    """

    try:
        event_label = label or (phase or "")
        if phase and label:
            fields.setdefault("phase", phase)
        payload = ", ".join(f"{k}={_render(v)}" for k, v in sorted(fields.items()))
        level = _LEVELS.get(event_label.lower(), logging.INFO)
        log_line(f"[SCRAPER][{event_label.upper()}] {payload}", level=level)
    except Exception:  # noqa: BLE001
        # Logging must never take the crawl down.
        return


__all__ = ["_scraper_event"]
