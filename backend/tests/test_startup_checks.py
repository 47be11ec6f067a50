from decimal import Decimal

import pytest

from eventcoupons.core.config import settings
from eventcoupons.core.startup_checks import validate_production_settings


def _set_valid_production_baseline(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "sentry_dsn", "https://examplePublicKey@o0.ingest.sentry.io/0")
    monkeypatch.setattr(settings, "cors_origins", ["https://kidzevents.ae"])
    monkeypatch.setattr(settings, "service_fee_percent", Decimal("5"))
    monkeypatch.setattr(settings, "tax_rate_percent", Decimal("5"))
    monkeypatch.setattr(settings, "money_rounding", "half_up")


def test_validate_production_settings_accepts_baseline(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)

    validate_production_settings()


def test_validate_production_settings_requires_sentry_dsn(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "sentry_dsn", "")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "SENTRY_DSN must be configured in production." in str(exc.value)


def test_validate_production_settings_rejects_wildcard_and_localhost_cors(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "cors_origins", ["*", "http://localhost:5173"])

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    message = str(exc.value)
    assert "no '*'" in message
    assert "localhost" in message


def test_validate_production_settings_reports_every_problem(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "tax_rate_percent", Decimal("120"))
    monkeypatch.setattr(settings, "money_rounding", "banker")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    message = str(exc.value)
    assert "TAX_RATE_PERCENT must be between 0 and 100." in message
    assert "MONEY_ROUNDING" in message


def test_validate_non_production_does_not_require_sentry_dsn(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "local")
    monkeypatch.setattr(settings, "sentry_dsn", "")

    validate_production_settings()
