from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from eventcoupons.core import metrics
from eventcoupons.models.coupon import Coupon, CouponStatus, CouponType, OrderContext
from eventcoupons.services import pricing

logger = logging.getLogger(__name__)


class EligibilityReason(str, enum.Enum):
    INACTIVE = "INACTIVE"
    NOT_YET_VALID = "NOT_YET_VALID"
    EXPIRED = "EXPIRED"
    USAGE_LIMIT_REACHED = "USAGE_LIMIT_REACHED"
    USER_USAGE_LIMIT_REACHED = "USER_USAGE_LIMIT_REACHED"
    NOT_FIRST_TIME = "NOT_FIRST_TIME"
    BELOW_MINIMUM = "BELOW_MINIMUM"
    OUT_OF_PRICE_RANGE = "OUT_OF_PRICE_RANGE"
    EXCLUDED = "EXCLUDED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


REASON_MESSAGES: dict[EligibilityReason, str] = {
    EligibilityReason.INACTIVE: "This coupon is not active.",
    EligibilityReason.NOT_YET_VALID: "This coupon is not valid yet.",
    EligibilityReason.EXPIRED: "This coupon has expired.",
    EligibilityReason.USAGE_LIMIT_REACHED: "This coupon has reached its usage limit.",
    EligibilityReason.USER_USAGE_LIMIT_REACHED: "You have already used this coupon the maximum number of times.",
    EligibilityReason.NOT_FIRST_TIME: "This coupon is only available on your first booking.",
    EligibilityReason.BELOW_MINIMUM: "Your order does not reach the minimum amount for this coupon.",
    EligibilityReason.OUT_OF_PRICE_RANGE: "Your order amount is outside the range this coupon applies to.",
    EligibilityReason.EXCLUDED: "This coupon cannot be used for one or more items in your order.",
    EligibilityReason.NOT_APPLICABLE: "This coupon does not apply to the items in your order.",
}


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: EligibilityReason | None = None

    @property
    def message(self) -> str | None:
        return REASON_MESSAGES[self.reason] if self.reason is not None else None


ELIGIBLE = EligibilityResult(eligible=True)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _intersects(wanted: Iterable[str], have: Iterable[str]) -> bool:
    return not frozenset(wanted).isdisjoint(have)


def _state_reason(coupon: Coupon, now: datetime) -> EligibilityReason | None:
    if not coupon.is_active or coupon.status == CouponStatus.inactive:
        return EligibilityReason.INACTIVE
    if now < as_utc(coupon.valid_from):
        return EligibilityReason.NOT_YET_VALID
    if now > as_utc(coupon.valid_until):
        return EligibilityReason.EXPIRED
    return None


def _usage_reason(coupon: Coupon, order: OrderContext) -> EligibilityReason | None:
    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        return EligibilityReason.USAGE_LIMIT_REACHED
    if (
        coupon.user_usage_limit is not None
        and order.user_usage_count is not None
        and order.user_usage_count >= coupon.user_usage_limit
    ):
        return EligibilityReason.USER_USAGE_LIMIT_REACHED
    if coupon.first_time_only and not order.is_first_time_user:
        return EligibilityReason.NOT_FIRST_TIME
    return None


def _amount_reason(coupon: Coupon, order: OrderContext) -> EligibilityReason | None:
    amount = Decimal(order.order_amount)
    if coupon.minimum_amount is not None and amount < coupon.minimum_amount:
        return EligibilityReason.BELOW_MINIMUM
    if coupon.price_range is not None and not coupon.price_range.contains(amount):
        return EligibilityReason.OUT_OF_PRICE_RANGE
    return None


def _scope_reason(coupon: Coupon, order: OrderContext) -> EligibilityReason | None:
    exclusions = (
        (coupon.excluded_events, order.event_ids),
        (coupon.excluded_categories, order.category_ids),
        (coupon.excluded_vendors, order.vendor_ids),
    )
    for excluded, have in exclusions:
        if excluded and _intersects(excluded, have):
            return EligibilityReason.EXCLUDED

    inclusions = (
        (coupon.applicable_events, order.event_ids),
        (coupon.applicable_categories, order.category_ids),
        (coupon.applicable_vendors, order.vendor_ids),
        (coupon.applicable_event_types, order.event_types),
    )
    for applicable, have in inclusions:
        # An empty applicable set places no restriction on that dimension.
        if applicable and not _intersects(applicable, have):
            return EligibilityReason.NOT_APPLICABLE
    return None


def is_eligible(coupon: Coupon, order: OrderContext, now: datetime) -> EligibilityResult:
    """Run the coupon rules in order and report the first one the order violates."""
    now = as_utc(now)
    reason = (
        _state_reason(coupon, now)
        or _usage_reason(coupon, order)
        or _amount_reason(coupon, order)
        or _scope_reason(coupon, order)
    )
    if reason is None:
        return ELIGIBLE
    logger.debug("coupon rejected", extra={"coupon_code": coupon.code, "reason": reason.value})
    return EligibilityResult(eligible=False, reason=reason)


def compute_discount(
    coupon: Coupon,
    order: OrderContext,
    *,
    shipping_cost: Decimal = Decimal("0"),
    rounding: pricing.MoneyRounding | None = None,
) -> Decimal:
    """Discount granted by an eligible coupon.

    Percentage and fixed-amount discounts never exceed the order amount, and
    ``maximum_discount`` caps are applied after rounding. Free-shipping coupons
    discount whatever shipping cost the caller passes in.
    """
    amount = Decimal(order.order_amount)
    if amount <= 0 and coupon.type != CouponType.free_shipping:
        return pricing.ZERO

    if coupon.type == CouponType.percentage:
        discount = pricing.quantize_money(pricing.percent_of(amount, coupon.value), rounding=rounding)
        if coupon.maximum_discount is not None:
            discount = min(discount, Decimal(coupon.maximum_discount))
        discount = min(discount, amount)
    elif coupon.type == CouponType.fixed_amount:
        discount = min(pricing.quantize_money(coupon.value, rounding=rounding), amount)
    elif coupon.type == CouponType.free_shipping:
        discount = pricing.quantize_money(Decimal(shipping_cost), rounding=rounding)
    else:
        logger.warning("unknown coupon type", extra={"coupon_code": coupon.code, "coupon_type": str(coupon.type)})
        discount = pricing.ZERO

    # Rounding down keeps the result within every cap applied above.
    return pricing.quantize_money(max(discount, pricing.ZERO), rounding="down")


@dataclass(frozen=True)
class CouponEvaluation:
    coupon: Coupon
    eligible: bool
    reason: EligibilityReason | None
    message: str | None
    discount_amount: Decimal
    final_amount: Decimal


def evaluate_coupon(
    coupon: Coupon,
    order: OrderContext,
    *,
    now: datetime | None = None,
    shipping_cost: Decimal = Decimal("0"),
) -> CouponEvaluation:
    now = now or datetime.now(timezone.utc)
    result = is_eligible(coupon, order, now)
    metrics.record_coupon_evaluated()

    discount = pricing.ZERO
    if result.eligible:
        discount = compute_discount(coupon, order, shipping_cost=shipping_cost)
    else:
        metrics.record_coupon_rejected(result.reason.value)

    final_amount = Decimal(order.order_amount) - discount
    if coupon.type == CouponType.free_shipping:
        # The shipping discount is applied to the shipping line, not the order amount.
        final_amount = Decimal(order.order_amount)
    final_amount = pricing.quantize_money(max(final_amount, pricing.ZERO))

    logger.info(
        "coupon evaluated",
        extra={
            "coupon_code": coupon.code,
            "eligible": result.eligible,
            "reason": result.reason.value if result.reason else None,
            "discount_amount": str(discount),
        },
    )
    return CouponEvaluation(
        coupon=coupon,
        eligible=result.eligible,
        reason=result.reason,
        message=result.message,
        discount_amount=discount,
        final_amount=final_amount,
    )
