from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from eventcoupons.core.config import settings
from eventcoupons.models.coupon import Coupon, CouponStatus, CouponType, DisplayStatus, OrderContext
from eventcoupons.services.coupon_rules import as_utc, is_eligible

_SECONDS_PER_DAY = 24 * 60 * 60


def days_left(coupon: Coupon, now: datetime) -> int:
    remaining = (as_utc(coupon.valid_until) - as_utc(now)).total_seconds()
    return math.ceil(remaining / _SECONDS_PER_DAY)


def is_expiring_soon(coupon: Coupon, now: datetime) -> bool:
    return days_left(coupon, now) <= settings.expiring_soon_days


def remaining_uses(coupon: Coupon) -> int | None:
    if coupon.usage_limit is None:
        return None
    return max(0, coupon.usage_limit - coupon.usage_count)


def display_status(coupon: Coupon, now: datetime) -> DisplayStatus:
    if not coupon.is_active or coupon.status == CouponStatus.inactive:
        return DisplayStatus.inactive
    if as_utc(coupon.valid_until) < as_utc(now) or coupon.status == CouponStatus.expired:
        return DisplayStatus.expired
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return DisplayStatus.used_up
    return DisplayStatus.active


def _format_amount(value: Decimal) -> str:
    value = Decimal(value)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return str(value.normalize())


def discount_label(coupon: Coupon) -> str:
    if coupon.type == CouponType.percentage:
        return f"{_format_amount(coupon.value)}% OFF"
    if coupon.type == CouponType.fixed_amount:
        currency = coupon.currency or settings.default_currency
        return f"{currency} {_format_amount(coupon.value)} OFF"
    if coupon.type == CouponType.free_shipping:
        return "FREE SHIPPING"
    return "DISCOUNT"


def is_featured(coupon: Coupon) -> bool:
    return coupon.featured or Decimal(coupon.value) >= settings.featured_min_value


def _matches_search(coupon: Coupon, search: str | None) -> bool:
    needle = (search or "").strip().lower()
    if not needle:
        return True
    return needle in coupon.code.lower() or needle in (coupon.name or "").lower()


@dataclass(frozen=True)
class DiscoveryResult:
    featured: list[Coupon] = field(default_factory=list)
    regular: list[Coupon] = field(default_factory=list)

    @property
    def all(self) -> list[Coupon]:
        return [*self.featured, *self.regular]


def discover_coupons(
    coupons: Iterable[Coupon],
    *,
    now: datetime,
    search: str | None = None,
    coupon_type: CouponType | None = None,
    order: OrderContext | None = None,
) -> DiscoveryResult:
    """Active coupons a customer can browse, split into featured and regular offers."""
    featured: list[Coupon] = []
    regular: list[Coupon] = []
    for coupon in coupons:
        if display_status(coupon, now) != DisplayStatus.active:
            continue
        if not _matches_search(coupon, search):
            continue
        if coupon_type is not None and coupon.type != coupon_type:
            continue
        if order is not None and not is_eligible(coupon, order, now).eligible:
            continue
        (featured if is_featured(coupon) else regular).append(coupon)
    return DiscoveryResult(featured=featured, regular=regular)


@dataclass(frozen=True)
class CouponListSummary:
    total: int
    active: int
    inactive: int
    expired: int
    used_up: int
    total_uses: int


def summarize_coupons(coupons: Iterable[Coupon], *, now: datetime) -> CouponListSummary:
    """Counts per display status for the admin coupon list, plus redemptions so far."""
    rows = list(coupons)
    counts = Counter(display_status(coupon, now) for coupon in rows)
    return CouponListSummary(
        total=len(rows),
        active=counts[DisplayStatus.active],
        inactive=counts[DisplayStatus.inactive],
        expired=counts[DisplayStatus.expired],
        used_up=counts[DisplayStatus.used_up],
        total_uses=sum(coupon.usage_count for coupon in rows),
    )


def filter_coupons(
    coupons: Iterable[Coupon],
    *,
    now: datetime,
    search: str | None = None,
    status: DisplayStatus | None = None,
    coupon_type: CouponType | None = None,
) -> list[Coupon]:
    return [
        coupon
        for coupon in coupons
        if _matches_search(coupon, search)
        and (status is None or display_status(coupon, now) == status)
        and (coupon_type is None or coupon.type == coupon_type)
    ]
