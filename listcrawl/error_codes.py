
"""Centralised error code taxonomy for crawler failures.

These codes appear in structured logs and in the diagnostic JSON files written
to the backup directory, so they should stay stable.
"""


class ErrorCode:
    NAVIGATION_TIMEOUT = "navigation_timeout"
    NAVIGATION = "navigation_error"
    CLICK_NAVIGATION = "click_navigation_exhausted"
    PAGE_LOAD = "page_load_exhausted"
    SESSION_CLOSED = "session_closed"
    PERSIST = "persist_failed"
    INTERNAL = "internal_error"


class ScrapeError(Exception):
    """Base class for crawler failures that carry an ``error_code``."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code

    def __str__(self) -> str:  # pragma: no cover - inherited behaviour
        return str(self.args[0]) if self.args else ""


__all__ = ["ErrorCode", "ScrapeError"]
