from __future__ import annotations

import re
from datetime import datetime, time, timezone
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from eventcoupons.models.coupon import (
    Coupon,
    CouponStatus,
    CouponType,
    CouponUsage,
    DisplayStatus,
    OrderContext,
    PriceRange,
)

CODE_RE = re.compile(r"^[A-Z0-9_-]+$")
CODE_MIN_LEN = 3
CODE_MAX_LEN = 20
NAME_MAX_LEN = 100
DESCRIPTION_MAX_LEN = 500
# Upper bound for any money amount; keeps cent quantization inside the default decimal context.
MAX_MONEY_AMOUNT = Decimal("1000000000")
_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def check_code(code: str | None) -> str | None:
    cleaned = (code or "").strip().upper()
    if not cleaned:
        return "Code is required"
    if len(cleaned) < CODE_MIN_LEN:
        return f"Code must be at least {CODE_MIN_LEN} characters"
    if len(cleaned) > CODE_MAX_LEN:
        return f"Code cannot exceed {CODE_MAX_LEN} characters"
    if not CODE_RE.fullmatch(cleaned):
        return "Code must contain only uppercase letters, numbers, hyphens, and underscores"
    return None


def check_name(name: str | None) -> str | None:
    cleaned = (name or "").strip()
    if not cleaned:
        return "Name is required"
    if len(cleaned) > NAME_MAX_LEN:
        return f"Name cannot exceed {NAME_MAX_LEN} characters"
    return None


def check_description(description: str | None) -> str | None:
    if description and len(description) > DESCRIPTION_MAX_LEN:
        return f"Description cannot exceed {DESCRIPTION_MAX_LEN} characters"
    return None


def check_value(value: Decimal, coupon_type: CouponType | None) -> str | None:
    if value < 0:
        return "Value cannot be negative"
    if coupon_type == CouponType.percentage and value > 100:
        return "Percentage cannot exceed 100"
    if value > MAX_MONEY_AMOUNT:
        return f"Value cannot exceed {MAX_MONEY_AMOUNT}"
    return None


def check_currency(currency: str | None, coupon_type: CouponType | None) -> str | None:
    if coupon_type == CouponType.fixed_amount and not (currency or "").strip():
        return "Currency is required for fixed amount coupons"
    return None


def check_money_amount(value: Decimal | None, label: str) -> str | None:
    if value is not None and value < 0:
        return f"{label} cannot be negative"
    if value is not None and value > MAX_MONEY_AMOUNT:
        return f"{label} cannot exceed {MAX_MONEY_AMOUNT}"
    return None


def check_limit(value: int | None, label: str) -> str | None:
    if value is not None and value < 1:
        return f"{label} must be at least 1"
    return None


def check_validity_window(valid_from: datetime | None, valid_until: datetime | None) -> str | None:
    if valid_from is None or valid_until is None:
        return None
    if _as_utc(valid_until) <= _as_utc(valid_from):
        return "Valid until must be after valid from"
    return None


def check_price_range(minimum: Decimal | None, maximum: Decimal | None) -> str | None:
    if minimum is not None and maximum is not None and minimum > maximum:
        return "Price range minimum cannot exceed maximum"
    return None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _raise_if(message: str | None) -> None:
    if message:
        raise ValueError(message)


def _parse_date_bound(value: Any, *, end_of_day: bool) -> Any:
    # Bare dates from the admin form cover the whole day.
    if isinstance(value, str) and _DATE_ONLY_RE.fullmatch(value.strip()):
        day = datetime.strptime(value.strip(), "%Y-%m-%d").date()
        return datetime.combine(day, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    return value


def _sorted_ids(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(str(item) for item in value)
    return value


class PriceRangeIn(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    min: Decimal | None = None
    max: Decimal | None = None

    @field_validator("min", "max")
    @classmethod
    def _bounded(cls, value: Decimal | None) -> Decimal | None:
        _raise_if(check_money_amount(value, "Price range bound"))
        return value

    @model_validator(mode="after")
    def _ordered(self) -> PriceRangeIn:
        _raise_if(check_price_range(self.min, self.max))
        return self


class CouponCreate(BaseModel):
    """Coupon definition as submitted by an administrator."""

    code: str
    name: str
    description: str | None = None
    type: CouponType
    value: Decimal
    currency: str | None = Field(default=None, validate_default=True)
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    user_usage_limit: int | None = None
    usage_count: int = Field(default=0, ge=0)
    first_time_only: bool = False
    applicable_events: list[str] = Field(default_factory=list)
    excluded_events: list[str] = Field(default_factory=list)
    applicable_categories: list[str] = Field(default_factory=list)
    excluded_categories: list[str] = Field(default_factory=list)
    applicable_vendors: list[str] = Field(default_factory=list)
    excluded_vendors: list[str] = Field(default_factory=list)
    applicable_event_types: list[str] = Field(default_factory=list)
    price_range: PriceRangeIn | None = None
    status: CouponStatus = CouponStatus.active
    is_active: bool = True
    featured: bool = False

    @field_validator("code", mode="before")
    @classmethod
    def _normalize_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        _raise_if(check_code(value))
        return value

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        _raise_if(check_name(value))
        return value.strip()

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        _raise_if(check_description(value))
        return value

    @field_validator("value")
    @classmethod
    def _value(cls, value: Decimal, info: ValidationInfo) -> Decimal:
        _raise_if(check_value(value, info.data.get("type")))
        return value

    @field_validator("currency")
    @classmethod
    def _currency(cls, value: str | None, info: ValidationInfo) -> str | None:
        _raise_if(check_currency(value, info.data.get("type")))
        return value.strip().upper() if value else value

    @field_validator("minimum_amount")
    @classmethod
    def _minimum_amount(cls, value: Decimal | None) -> Decimal | None:
        _raise_if(check_money_amount(value, "Minimum amount"))
        return value

    @field_validator("maximum_discount")
    @classmethod
    def _maximum_discount(cls, value: Decimal | None) -> Decimal | None:
        _raise_if(check_money_amount(value, "Maximum discount"))
        return value

    @field_validator("valid_from", mode="before")
    @classmethod
    def _valid_from_date(cls, value: Any) -> Any:
        return _parse_date_bound(value, end_of_day=False)

    @field_validator("valid_until", mode="before")
    @classmethod
    def _valid_until_date(cls, value: Any) -> Any:
        return _parse_date_bound(value, end_of_day=True)

    @field_validator("valid_from")
    @classmethod
    def _valid_from(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @field_validator("valid_until")
    @classmethod
    def _valid_until(cls, value: datetime, info: ValidationInfo) -> datetime:
        _raise_if(check_validity_window(info.data.get("valid_from"), value))
        return _as_utc(value)

    @field_validator("usage_limit")
    @classmethod
    def _usage_limit(cls, value: int | None) -> int | None:
        _raise_if(check_limit(value, "Usage limit"))
        return value

    @field_validator("user_usage_limit")
    @classmethod
    def _user_usage_limit(cls, value: int | None) -> int | None:
        _raise_if(check_limit(value, "User usage limit"))
        return value

    def to_model(self) -> Coupon:
        price_range = None
        if self.price_range is not None:
            price_range = PriceRange(min=self.price_range.min, max=self.price_range.max)
        return Coupon(
            code=self.code,
            name=self.name,
            description=self.description,
            type=self.type,
            value=self.value,
            currency=self.currency,
            minimum_amount=self.minimum_amount,
            maximum_discount=self.maximum_discount,
            valid_from=self.valid_from,
            valid_until=self.valid_until,
            usage_limit=self.usage_limit,
            user_usage_limit=self.user_usage_limit,
            usage_count=self.usage_count,
            first_time_only=self.first_time_only,
            applicable_events=frozenset(self.applicable_events),
            excluded_events=frozenset(self.excluded_events),
            applicable_categories=frozenset(self.applicable_categories),
            excluded_categories=frozenset(self.excluded_categories),
            applicable_vendors=frozenset(self.applicable_vendors),
            excluded_vendors=frozenset(self.excluded_vendors),
            applicable_event_types=frozenset(self.applicable_event_types),
            price_range=price_range,
            status=self.status,
            is_active=self.is_active,
            featured=self.featured,
        )


class CouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    description: str | None = None
    type: CouponType
    value: Decimal
    currency: str | None = None
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None
    valid_from: datetime
    valid_until: datetime
    usage_limit: int | None = None
    user_usage_limit: int | None = None
    usage_count: int
    first_time_only: bool
    applicable_events: list[str] = Field(default_factory=list)
    excluded_events: list[str] = Field(default_factory=list)
    applicable_categories: list[str] = Field(default_factory=list)
    excluded_categories: list[str] = Field(default_factory=list)
    applicable_vendors: list[str] = Field(default_factory=list)
    excluded_vendors: list[str] = Field(default_factory=list)
    applicable_event_types: list[str] = Field(default_factory=list)
    price_range: PriceRangeIn | None = None
    status: CouponStatus
    is_active: bool
    featured: bool = False

    @field_validator(
        "applicable_events",
        "excluded_events",
        "applicable_categories",
        "excluded_categories",
        "applicable_vendors",
        "excluded_vendors",
        "applicable_event_types",
        mode="before",
    )
    @classmethod
    def _ids(cls, value: Any) -> Any:
        return _sorted_ids(value)


class CouponSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    type: CouponType
    value: Decimal


class OrderContextIn(BaseModel):
    order_amount: Decimal = Field(ge=0, le=MAX_MONEY_AMOUNT)
    event_ids: list[str] = Field(default_factory=list)
    category_ids: list[str] = Field(default_factory=list)
    vendor_ids: list[str] = Field(default_factory=list)
    event_types: list[str] = Field(default_factory=list)
    user_id: str | None = None
    is_first_time_user: bool = False
    user_usage_count: int | None = Field(default=None, ge=0)

    def to_model(self) -> OrderContext:
        return OrderContext(
            order_amount=self.order_amount,
            event_ids=frozenset(self.event_ids),
            category_ids=frozenset(self.category_ids),
            vendor_ids=frozenset(self.vendor_ids),
            event_types=frozenset(self.event_types),
            user_id=self.user_id,
            is_first_time_user=self.is_first_time_user,
            user_usage_count=self.user_usage_count,
        )


class CouponUsageIn(BaseModel):
    user_id: str
    order_id: str
    used_at: datetime
    discount_amount: Decimal = Field(ge=0, le=MAX_MONEY_AMOUNT)

    def to_model(self) -> CouponUsage:
        return CouponUsage(
            user_id=self.user_id,
            order_id=self.order_id,
            used_at=_as_utc(self.used_at),
            discount_amount=self.discount_amount,
        )


class CouponCheckResponse(BaseModel):
    valid: bool
    errors: dict[str, list[str]] = Field(default_factory=dict)


class CouponValidateRequest(BaseModel):
    coupon: dict[str, Any]
    order: OrderContextIn
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY_AMOUNT)
    now: datetime | None = None


class CouponEvaluationResponse(BaseModel):
    coupon: CouponSummary
    eligible: bool
    reason: str | None = None
    message: str | None = None
    discount_amount: Decimal
    final_amount: Decimal


class CouponDiscoverRequest(BaseModel):
    coupons: list[dict[str, Any]] = Field(default_factory=list)
    search: str | None = Field(default=None, max_length=100)
    type: CouponType | None = None
    order: OrderContextIn | None = None
    now: datetime | None = None


class CouponOffer(BaseModel):
    coupon: CouponRead
    label: str
    days_left: int
    expiring_soon: bool
    remaining_uses: int | None = None


class CouponDiscoveryResponse(BaseModel):
    featured: list[CouponOffer] = Field(default_factory=list)
    regular: list[CouponOffer] = Field(default_factory=list)


class CouponStatsRequest(BaseModel):
    coupon: dict[str, Any]
    usages: list[CouponUsageIn] = Field(default_factory=list)
    now: datetime | None = None


class CouponStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_uses: int
    total_discount: Decimal
    unique_users: int
    average_discount: Decimal
    recent_uses: int
    remaining_uses: int | None = None
    usage_percentage: Decimal


class CouponQuoteRequest(BaseModel):
    coupon: dict[str, Any] | None = None
    order: OrderContextIn
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_MONEY_AMOUNT)
    now: datetime | None = None


class PricingQuote(BaseModel):
    subtotal: Decimal
    discount: Decimal
    service_fee: Decimal
    taxable_amount: Decimal
    tax: Decimal
    shipping: Decimal
    shipping_discount: Decimal
    total: Decimal
    coupon_applied: bool
    reason: str | None = None
    message: str | None = None


class CouponListRequest(BaseModel):
    coupons: list[dict[str, Any]] = Field(default_factory=list)
    search: str | None = Field(default=None, max_length=100)
    status: DisplayStatus | None = None
    type: CouponType | None = None
    now: datetime | None = None


class CouponListSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    active: int
    inactive: int
    expired: int
    used_up: int
    total_uses: int


class CouponListResponse(BaseModel):
    summary: CouponListSummaryRead
    coupons: list[CouponRead] = Field(default_factory=list)


class CouponCodeResponse(BaseModel):
    code: str
