from __future__ import annotations

import logging
from decimal import Decimal

from eventcoupons.core.config import settings

logger = logging.getLogger(__name__)


def _is_production() -> bool:
    env = (settings.environment or "").strip().lower()
    return env in {"prod", "production"}


def _looks_like_localhost(url: str | None) -> bool:
    value = (url or "").strip().lower()
    if not value:
        return False
    return "localhost" in value or "127.0.0.1" in value


def _append_if(problems: list[str], *, condition: bool, message: str) -> None:
    if condition:
        problems.append(message)


def _validate_observability_settings(problems: list[str]) -> None:
    _append_if(
        problems,
        condition=not (settings.sentry_dsn or "").strip(),
        message="SENTRY_DSN must be configured in production.",
    )


def _validate_cors_settings(problems: list[str]) -> None:
    origins = [str(origin) for origin in settings.cors_origins or []]
    _append_if(
        problems,
        condition="*" in origins,
        message="CORS_ORIGINS must list explicit origins (no '*') in production.",
    )
    _append_if(
        problems,
        condition=any(_looks_like_localhost(origin) for origin in origins),
        message="CORS_ORIGINS must not point at localhost in production.",
    )


def _validate_pricing_settings(problems: list[str]) -> None:
    for name in ("service_fee_percent", "tax_rate_percent"):
        value = Decimal(getattr(settings, name))
        _append_if(
            problems,
            condition=value < 0 or value > 100,
            message=f"{name.upper()} must be between 0 and 100.",
        )
    _append_if(
        problems,
        condition=settings.money_rounding not in {"half_up", "half_even", "up", "down"},
        message="MONEY_ROUNDING must be one of: half_up | half_even | up | down.",
    )


def validate_production_settings() -> None:
    """
    Fail fast on unsafe configuration when running in production.

    All problems are collected first so a single deploy attempt reports every one of them.
    """
    if not _is_production():
        return

    problems: list[str] = []
    _validate_observability_settings(problems)
    _validate_cors_settings(problems)
    _validate_pricing_settings(problems)

    if problems:
        logger.error("production configuration checks failed", extra={"problems": problems})
        raise RuntimeError("Production configuration checks failed:\n- " + "\n- ".join(problems))
