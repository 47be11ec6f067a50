from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from eventcoupons.core import metrics
from eventcoupons.models.coupon import Coupon
from eventcoupons.schemas.coupons import (
    CODE_MAX_LEN,
    CODE_MIN_LEN,
    CouponCreate,
    check_code,
    check_currency,
    check_description,
    check_limit,
    check_money_amount,
    check_name,
    check_price_range,
    check_validity_window,
    check_value,
)

__all__ = [
    "CouponCreate",
    "CouponDefinitionError",
    "check_code",
    "check_currency",
    "check_description",
    "check_limit",
    "check_money_amount",
    "check_name",
    "check_price_range",
    "check_validity_window",
    "check_value",
    "field_errors",
    "generate_coupon_code",
    "parse_coupon_definition",
    "parse_coupon_definitions",
    "validate_coupon_definition",
]

logger = logging.getLogger(__name__)

_GENERAL_FIELD = "__all__"


class CouponDefinitionError(ValueError):
    """Raised when a coupon definition breaks one or more field rules."""

    def __init__(self, errors: dict[str, list[str]]) -> None:
        self.errors = errors
        fields = ", ".join(sorted(errors)) or "coupon"
        super().__init__(f"Invalid coupon definition: {fields}")


def _error_field(loc: tuple[Any, ...]) -> str:
    if not loc:
        return _GENERAL_FIELD
    return str(loc[0])


def _error_message(error: Mapping[str, Any]) -> str:
    ctx = error.get("ctx") or {}
    raised = ctx.get("error")
    if isinstance(raised, ValueError):
        return str(raised)
    return str(error.get("msg") or "Invalid value")


def field_errors(exc: ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        field = _error_field(tuple(error.get("loc") or ()))
        message = _error_message(error)
        bucket = errors.setdefault(field, [])
        if message not in bucket:
            bucket.append(message)
    return errors


def validate_coupon_definition(data: Mapping[str, Any]) -> dict[str, list[str]]:
    """Return field errors for a coupon definition; an empty dict means it is valid."""
    try:
        CouponCreate.model_validate(dict(data))
    except ValidationError as exc:
        return field_errors(exc)
    return {}


def parse_coupon_definition(data: Mapping[str, Any] | CouponCreate) -> Coupon:
    if isinstance(data, CouponCreate):
        return data.to_model()
    try:
        payload = CouponCreate.model_validate(dict(data))
    except ValidationError as exc:
        errors = field_errors(exc)
        metrics.record_definition_rejected()
        logger.info("coupon definition rejected", extra={"fields": sorted(errors)})
        raise CouponDefinitionError(errors) from exc
    return payload.to_model()


def parse_coupon_definitions(items: Iterable[Mapping[str, Any]]) -> list[Coupon]:
    """Parse a batch of definitions; errors from every entry are keyed ``<index>.<field>``."""
    coupons: list[Coupon] = []
    errors: dict[str, list[str]] = {}
    for index, item in enumerate(items):
        try:
            coupons.append(parse_coupon_definition(item))
        except CouponDefinitionError as exc:
            for field, messages in exc.errors.items():
                errors[f"{index}.{field}"] = messages
    if errors:
        raise CouponDefinitionError(errors)
    return coupons


_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_coupon_code(*, prefix: str = "", length: int = 8) -> str:
    if length < CODE_MIN_LEN:
        raise ValueError(f"Generated part must be at least {CODE_MIN_LEN} characters")
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))
    code = f"{prefix.strip().upper()}-{suffix}".strip("-")
    if len(code) > CODE_MAX_LEN:
        raise ValueError(f"Code cannot exceed {CODE_MAX_LEN} characters")
    problem = check_code(code)
    if problem:
        raise ValueError(problem)
    return code
