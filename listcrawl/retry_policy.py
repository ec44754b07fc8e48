from __future__ import annotations

from typing import Optional

from playwright.sync_api import Error as PWError, TimeoutError as PWTimeout

from .error_codes import ErrorCode
from .logging_utils import _scraper_event

NON_RETRYABLE_ERROR_CODES = {
    # The browser target is gone; every further call on it fails the same way.
    ErrorCode.SESSION_CLOSED,
}

_TARGET_CLOSED_MARKERS = (
    "Target closed",
    "Target crashed",
    "has been closed",
    "Browser has been closed",
)


def is_target_closed_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* indicates the Playwright target is gone."""

    message = str(exc)
    return any(marker in message for marker in _TARGET_CLOSED_MARKERS)


def classify_error(exc: BaseException) -> str:
    """Map an exception raised by an interaction call to an ``ErrorCode``."""

    code = getattr(exc, "error_code", None)
    if isinstance(code, str) and code:
        return code
    if isinstance(exc, (PWTimeout, TimeoutError)):
        return ErrorCode.NAVIGATION_TIMEOUT
    if is_target_closed_error(exc):
        return ErrorCode.SESSION_CLOSED
    if isinstance(exc, PWError):
        return ErrorCode.NAVIGATION
    return ErrorCode.INTERNAL


def decide_retry(
    attempt_index: int,
    max_attempts: int,
    error: BaseException | None = None,
    *,
    error_code: Optional[str] = None,
    scope: Optional[str] = None,
) -> bool:
    """Decide whether a failed attempt (1-based ``attempt_index``) is retried.

    Attempts are bounded by ``max_attempts``; codes listed in
    ``NON_RETRYABLE_ERROR_CODES`` stop immediately. Every decision is logged.
    """

    code = (error_code or (classify_error(error) if error is not None else "")).strip()

    if attempt_index >= max_attempts:
        kind, will_retry = "capped", False
    elif code in NON_RETRYABLE_ERROR_CODES:
        kind, will_retry = "non_retryable", False
    else:
        kind, will_retry = "retryable", True

    _scraper_event(
        "state",
        phase="retry_decision",
        kind=kind,
        scope=scope,
        error_code=code or None,
        attempt=attempt_index,
        max_attempts=max_attempts,
        will_retry=will_retry,
        error_repr=repr(error) if error is not None else None,
    )
    return will_retry


__all__ = [
    "decide_retry",
    "classify_error",
    "is_target_closed_error",
    "NON_RETRYABLE_ERROR_CODES",
]
