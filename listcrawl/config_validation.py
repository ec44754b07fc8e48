from __future__ import annotations

from typing import Literal

from .config import CrawlConfig
from .field_extractor import DUPLICATE_POLICIES
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["cli", "tests"]


def _raise_config_error(message: str, *, entrypoint: Entrypoint, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def validate_config(cfg: CrawlConfig, entrypoint: Entrypoint = "cli") -> None:
    """Validate ``cfg`` before a run.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    """

    if "{page}" not in cfg.list_url_template:
        _raise_config_error(
            "List URL template must contain a {page} placeholder.",
            entrypoint=entrypoint,
            error="list_url_template_invalid",
        )

    if cfg.start_page < 1:
        _raise_config_error(
            "start_page must be at least 1.",
            entrypoint=entrypoint,
            error="start_page_invalid",
        )

    if cfg.max_pages < cfg.start_page:
        _raise_config_error(
            f"max_pages ({cfg.max_pages}) must not be below start_page ({cfg.start_page}).",
            entrypoint=entrypoint,
            error="page_range_invalid",
        )

    if cfg.items_per_page < 1:
        _raise_config_error(
            "items_per_page must be at least 1.",
            entrypoint=entrypoint,
            error="items_per_page_invalid",
        )

    attempt_fields = [
        ("page_load_attempts", cfg.page_load_attempts),
        ("click_attempts", cfg.click_attempts),
        ("item_attempts", cfg.item_attempts),
    ]
    for field_name, value in attempt_fields:
        if value < 1:
            _raise_config_error(
                f"{field_name} must be at least 1.",
                entrypoint=entrypoint,
                error="invalid_attempts",
            )

    if cfg.nav_timeout_seconds <= 0 or cfg.click_timeout_ms <= 0:
        _raise_config_error(
            "Navigation and click timeouts must be greater than zero.",
            entrypoint=entrypoint,
            error="invalid_timeout",
        )

    delay_fields = [
        ("item_delay_seconds", cfg.item_delay_seconds),
        ("scroll_settle_seconds", cfg.scroll_settle_seconds),
        ("list_settle_seconds", cfg.list_settle_seconds),
        ("retry_delay_seconds", cfg.retry_delay_seconds),
        ("failure_penalty_seconds", cfg.failure_penalty_seconds),
        ("page_delay_min_seconds", cfg.page_delay_min_seconds),
    ]
    for field_name, value in delay_fields:
        if value < 0:
            _raise_config_error(
                f"{field_name} must be non-negative.",
                entrypoint=entrypoint,
                error="invalid_delay",
            )

    if cfg.page_delay_max_seconds < cfg.page_delay_min_seconds:
        _raise_config_error(
            "page_delay_max_seconds must not be below page_delay_min_seconds.",
            entrypoint=entrypoint,
            error="invalid_delay_range",
        )

    if cfg.duplicate_key_policy not in DUPLICATE_POLICIES:
        _raise_config_error(
            f"duplicate_key_policy must be one of {', '.join(DUPLICATE_POLICIES)}.",
            entrypoint=entrypoint,
            error="duplicate_key_policy_invalid",
        )


__all__ = ["validate_config", "Entrypoint"]
