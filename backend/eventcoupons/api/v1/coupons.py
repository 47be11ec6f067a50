from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, status

from eventcoupons.models.coupon import Coupon, CouponType
from eventcoupons.schemas.coupons import (
    CouponCheckResponse,
    CouponCodeResponse,
    CouponDiscoverRequest,
    CouponDiscoveryResponse,
    CouponEvaluationResponse,
    CouponListRequest,
    CouponListResponse,
    CouponListSummaryRead,
    CouponOffer,
    CouponQuoteRequest,
    CouponRead,
    CouponStatsRead,
    CouponStatsRequest,
    CouponSummary,
    CouponValidateRequest,
    PricingQuote,
)
from eventcoupons.services import coupon_discovery, coupon_rules, coupon_stats, coupon_validation, pricing


router = APIRouter(prefix="/coupons", tags=["coupons"])


def _now(value: datetime | None) -> datetime:
    return coupon_rules.as_utc(value) if value is not None else datetime.now(timezone.utc)


def _to_offer(coupon: Coupon, now: datetime) -> CouponOffer:
    return CouponOffer(
        coupon=CouponRead.model_validate(coupon, from_attributes=True),
        label=coupon_discovery.discount_label(coupon),
        days_left=coupon_discovery.days_left(coupon, now),
        expiring_soon=coupon_discovery.is_expiring_soon(coupon, now),
        remaining_uses=coupon_discovery.remaining_uses(coupon),
    )


@router.post("/check", response_model=CouponCheckResponse)
def check_coupon_definition(payload: dict) -> CouponCheckResponse:
    errors = coupon_validation.validate_coupon_definition(payload)
    return CouponCheckResponse(valid=not errors, errors=errors)


@router.post("/validate", response_model=CouponEvaluationResponse)
def validate_coupon(payload: CouponValidateRequest) -> CouponEvaluationResponse:
    coupon = coupon_validation.parse_coupon_definition(payload.coupon)
    result = coupon_rules.evaluate_coupon(
        coupon,
        payload.order.to_model(),
        now=_now(payload.now),
        shipping_cost=payload.shipping_cost,
    )
    return CouponEvaluationResponse(
        coupon=CouponSummary.model_validate(coupon, from_attributes=True),
        eligible=result.eligible,
        reason=result.reason.value if result.reason else None,
        message=result.message,
        discount_amount=result.discount_amount,
        final_amount=result.final_amount,
    )


@router.post("/discover", response_model=CouponDiscoveryResponse)
def discover_coupons(payload: CouponDiscoverRequest) -> CouponDiscoveryResponse:
    now = _now(payload.now)
    found = coupon_discovery.discover_coupons(
        coupon_validation.parse_coupon_definitions(payload.coupons),
        now=now,
        search=payload.search,
        coupon_type=payload.type,
        order=payload.order.to_model() if payload.order else None,
    )
    return CouponDiscoveryResponse(
        featured=[_to_offer(c, now) for c in found.featured],
        regular=[_to_offer(c, now) for c in found.regular],
    )


@router.post("/stats", response_model=CouponStatsRead)
def coupon_usage_stats(payload: CouponStatsRequest) -> CouponStatsRead:
    stats = coupon_stats.compute_usage_stats(
        coupon_validation.parse_coupon_definition(payload.coupon),
        [usage.to_model() for usage in payload.usages],
        now=_now(payload.now),
    )
    return CouponStatsRead.model_validate(stats, from_attributes=True)


@router.post("/quote", response_model=PricingQuote)
def quote_order(payload: CouponQuoteRequest) -> PricingQuote:
    order = payload.order.to_model()
    shipping = pricing.quantize_money(payload.shipping_cost)
    discount = pricing.ZERO
    shipping_discount = pricing.ZERO
    reason: str | None = None
    message: str | None = None
    applied = False

    if payload.coupon is not None:
        coupon = coupon_validation.parse_coupon_definition(payload.coupon)
        result = coupon_rules.evaluate_coupon(coupon, order, now=_now(payload.now), shipping_cost=shipping)
        applied = result.eligible
        reason = result.reason.value if result.reason else None
        message = result.message
        if coupon.type == CouponType.free_shipping:
            shipping_discount = result.discount_amount
        else:
            discount = result.discount_amount

    breakdown = pricing.compute_order_totals(order.order_amount, discount)
    return PricingQuote(
        subtotal=breakdown.subtotal,
        discount=breakdown.discount,
        service_fee=breakdown.service_fee,
        taxable_amount=breakdown.taxable_amount,
        tax=breakdown.tax,
        shipping=shipping,
        shipping_discount=shipping_discount,
        total=pricing.quantize_money(breakdown.total + shipping - shipping_discount),
        coupon_applied=applied,
        reason=reason,
        message=message,
    )


@router.post("/list", response_model=CouponListResponse)
def list_coupons(payload: CouponListRequest) -> CouponListResponse:
    now = _now(payload.now)
    coupons = coupon_validation.parse_coupon_definitions(payload.coupons)
    summary = coupon_discovery.summarize_coupons(coupons, now=now)
    shown = coupon_discovery.filter_coupons(
        coupons,
        now=now,
        search=payload.search,
        status=payload.status,
        coupon_type=payload.type,
    )
    return CouponListResponse(
        summary=CouponListSummaryRead.model_validate(summary, from_attributes=True),
        coupons=[CouponRead.model_validate(c, from_attributes=True) for c in shown],
    )


@router.get("/generate-code", response_model=CouponCodeResponse)
def generate_code(
    prefix: str = Query(default="", max_length=12),
    length: int = Query(default=8, ge=3, le=20),
) -> CouponCodeResponse:
    try:
        code = coupon_validation.generate_coupon_code(prefix=prefix, length=length)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CouponCodeResponse(code=code)
