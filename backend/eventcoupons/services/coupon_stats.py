from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from eventcoupons.core.config import settings
from eventcoupons.models.coupon import Coupon, CouponUsage
from eventcoupons.services import pricing
from eventcoupons.services.coupon_discovery import remaining_uses
from eventcoupons.services.coupon_rules import as_utc


@dataclass(frozen=True)
class CouponStats:
    total_uses: int
    total_discount: Decimal
    unique_users: int
    average_discount: Decimal
    recent_uses: int
    remaining_uses: int | None
    usage_percentage: Decimal


def usage_percentage(coupon: Coupon, total_uses: int) -> Decimal:
    if not coupon.usage_limit:
        return Decimal("0.0")
    pct = Decimal(total_uses) * Decimal("100") / Decimal(coupon.usage_limit)
    return min(pct, Decimal("100")).quantize(Decimal("0.1"))


def compute_usage_stats(coupon: Coupon, usages: Iterable[CouponUsage], *, now: datetime) -> CouponStats:
    rows = list(usages)
    recent_cutoff = as_utc(now) - timedelta(days=settings.recent_usage_days)

    total_discount = sum((Decimal(row.discount_amount) for row in rows), start=pricing.ZERO)
    total_uses = len(rows)
    average = pricing.quantize_money(total_discount / total_uses) if total_uses else pricing.ZERO

    return CouponStats(
        total_uses=total_uses,
        total_discount=pricing.quantize_money(total_discount),
        unique_users=len({row.user_id for row in rows}),
        average_discount=average,
        recent_uses=sum(1 for row in rows if as_utc(row.used_at) >= recent_cutoff),
        remaining_uses=remaining_uses(coupon),
        usage_percentage=usage_percentage(coupon, total_uses),
    )
