from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from eventcoupons.core import metrics
from eventcoupons.models.coupon import Coupon, CouponStatus, CouponType, OrderContext, PriceRange
from eventcoupons.services.coupon_rules import (
    REASON_MESSAGES,
    EligibilityReason,
    compute_discount,
    evaluate_coupon,
    is_eligible,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def _coupon(**overrides) -> Coupon:
    base = Coupon(
        code="SUMMER20",
        name="Summer camp",
        type=CouponType.percentage,
        value=Decimal("20"),
        valid_from=datetime(2024, 1, 1, tzinfo=timezone.utc),
        valid_until=datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc),
    )
    return replace(base, **overrides)


def _order(amount: str = "150", **overrides) -> OrderContext:
    base = OrderContext(order_amount=Decimal(amount), event_ids=frozenset({"evt-1"}), user_id="user-1")
    return replace(base, **overrides)


def test_percentage_coupon_above_minimum_is_eligible_with_discount() -> None:
    coupon = _coupon(minimum_amount=Decimal("100"))
    order = _order("150")

    result = is_eligible(coupon, order, NOW)

    assert result.eligible is True
    assert result.reason is None
    assert compute_discount(coupon, order) == Decimal("30.00")


def test_percentage_coupon_below_minimum_is_rejected() -> None:
    result = is_eligible(_coupon(minimum_amount=Decimal("100")), _order("50"), NOW)

    assert result.eligible is False
    assert result.reason == EligibilityReason.BELOW_MINIMUM


def test_percentage_discount_is_capped_by_maximum_discount() -> None:
    coupon = _coupon(value=Decimal("50"), maximum_discount=Decimal("40"))

    assert compute_discount(coupon, _order("200")) == Decimal("40")


def test_fixed_amount_discount_is_capped_by_order_amount() -> None:
    coupon = _coupon(type=CouponType.fixed_amount, value=Decimal("30"), currency="AED")

    assert compute_discount(coupon, _order("20")) == Decimal("20.00")


def test_coupon_past_valid_until_is_expired() -> None:
    coupon = _coupon(
        valid_from=datetime(2024, 1, 1, tzinfo=timezone.utc),
        valid_until=datetime(2024, 1, 31, tzinfo=timezone.utc),
    )

    result = is_eligible(coupon, _order(), datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert result.reason == EligibilityReason.EXPIRED


def test_coupon_before_valid_from_is_not_yet_valid() -> None:
    coupon = _coupon(valid_from=datetime(2024, 7, 1, tzinfo=timezone.utc))

    assert is_eligible(coupon, _order(), NOW).reason == EligibilityReason.NOT_YET_VALID


def test_validity_window_is_inclusive_at_both_ends() -> None:
    coupon = _coupon()

    assert is_eligible(coupon, _order(), coupon.valid_from).eligible is True
    assert is_eligible(coupon, _order(), coupon.valid_until).eligible is True


def test_usage_limit_reached_wins_over_later_rules() -> None:
    coupon = _coupon(usage_limit=100, usage_count=100, first_time_only=True, minimum_amount=Decimal("1000"))

    result = is_eligible(coupon, _order("10", is_first_time_user=False), NOW)

    assert result.reason == EligibilityReason.USAGE_LIMIT_REACHED


def test_usage_below_limit_is_allowed() -> None:
    assert is_eligible(_coupon(usage_limit=100, usage_count=99), _order(), NOW).eligible is True


@pytest.mark.parametrize(
    ("is_active", "status"),
    [(False, CouponStatus.active), (True, CouponStatus.inactive), (False, CouponStatus.inactive)],
)
def test_inactive_coupon_is_rejected_first(is_active: bool, status: CouponStatus) -> None:
    coupon = _coupon(is_active=is_active, status=status, valid_until=datetime(2024, 1, 2, tzinfo=timezone.utc))

    assert is_eligible(coupon, _order(), NOW).reason == EligibilityReason.INACTIVE


def test_expired_status_flag_does_not_affect_date_based_validity() -> None:
    coupon = _coupon(status=CouponStatus.expired)

    assert is_eligible(coupon, _order(), NOW).eligible is True


def test_user_usage_limit_uses_caller_supplied_count() -> None:
    coupon = _coupon(user_usage_limit=1)

    assert is_eligible(coupon, _order(user_usage_count=1), NOW).reason == EligibilityReason.USER_USAGE_LIMIT_REACHED
    assert is_eligible(coupon, _order(user_usage_count=0), NOW).eligible is True
    assert is_eligible(coupon, _order(user_usage_count=None), NOW).eligible is True


def test_first_time_only_coupon_requires_first_time_user() -> None:
    coupon = _coupon(first_time_only=True)

    assert is_eligible(coupon, _order(is_first_time_user=False), NOW).reason == EligibilityReason.NOT_FIRST_TIME
    assert is_eligible(coupon, _order(is_first_time_user=True), NOW).eligible is True


def test_price_range_bounds_are_inclusive_and_optional() -> None:
    bounded = _coupon(price_range=PriceRange(min=Decimal("50"), max=Decimal("200")))
    open_ended = _coupon(price_range=PriceRange(min=Decimal("50")))

    assert is_eligible(bounded, _order("50"), NOW).eligible is True
    assert is_eligible(bounded, _order("200"), NOW).eligible is True
    assert is_eligible(bounded, _order("200.01"), NOW).reason == EligibilityReason.OUT_OF_PRICE_RANGE
    assert is_eligible(bounded, _order("49.99"), NOW).reason == EligibilityReason.OUT_OF_PRICE_RANGE
    assert is_eligible(open_ended, _order("100000"), NOW).eligible is True


def test_minimum_amount_is_checked_before_price_range() -> None:
    coupon = _coupon(minimum_amount=Decimal("100"), price_range=PriceRange(min=Decimal("500")))

    assert is_eligible(coupon, _order("50"), NOW).reason == EligibilityReason.BELOW_MINIMUM


def test_exclusion_overrides_inclusion_for_same_event() -> None:
    coupon = _coupon(applicable_events=frozenset({"A"}), excluded_events=frozenset({"A"}))

    result = is_eligible(coupon, _order(event_ids=frozenset({"A"})), NOW)

    assert result.eligible is False
    assert result.reason == EligibilityReason.EXCLUDED


@pytest.mark.parametrize(
    ("coupon_field", "order_field"),
    [
        ("excluded_events", "event_ids"),
        ("excluded_categories", "category_ids"),
        ("excluded_vendors", "vendor_ids"),
    ],
)
def test_any_excluded_identifier_rejects_the_order(coupon_field: str, order_field: str) -> None:
    coupon = _coupon(**{coupon_field: frozenset({"x"})})
    order = _order(**{order_field: frozenset({"x", "y"})})

    assert is_eligible(coupon, order, NOW).reason == EligibilityReason.EXCLUDED


@pytest.mark.parametrize(
    ("coupon_field", "order_field"),
    [
        ("applicable_events", "event_ids"),
        ("applicable_categories", "category_ids"),
        ("applicable_vendors", "vendor_ids"),
        ("applicable_event_types", "event_types"),
    ],
)
def test_restricted_dimension_requires_intersection(coupon_field: str, order_field: str) -> None:
    coupon = _coupon(**{coupon_field: frozenset({"wanted"})})

    assert is_eligible(coupon, _order(**{order_field: frozenset({"other"})}), NOW).reason == EligibilityReason.NOT_APPLICABLE
    assert is_eligible(coupon, _order(**{order_field: frozenset()}), NOW).reason == EligibilityReason.NOT_APPLICABLE
    assert is_eligible(coupon, _order(**{order_field: frozenset({"other", "wanted"})}), NOW).eligible is True


def test_empty_applicable_sets_act_as_wildcards() -> None:
    order = _order(
        event_ids=frozenset({"evt-99"}),
        category_ids=frozenset({"arts"}),
        vendor_ids=frozenset({"vendor-7"}),
        event_types=frozenset({"workshop"}),
    )

    assert is_eligible(_coupon(), order, NOW).eligible is True


def test_naive_datetimes_are_treated_as_utc() -> None:
    coupon = _coupon(valid_from=datetime(2024, 1, 1), valid_until=datetime(2024, 1, 31))

    assert is_eligible(coupon, _order(), datetime(2024, 1, 15)).eligible is True
    assert is_eligible(coupon, _order(), datetime(2024, 2, 1, tzinfo=timezone.utc)).reason == EligibilityReason.EXPIRED


def test_is_eligible_is_deterministic() -> None:
    coupon = _coupon(minimum_amount=Decimal("100"), applicable_events=frozenset({"evt-1"}))
    order = _order("120")

    results = {is_eligible(coupon, order, NOW) for _ in range(5)}

    assert len(results) == 1


def test_free_shipping_discount_uses_caller_shipping_cost() -> None:
    coupon = _coupon(type=CouponType.free_shipping, value=Decimal("0"))

    assert compute_discount(coupon, _order("80")) == Decimal("0.00")
    assert compute_discount(coupon, _order("80"), shipping_cost=Decimal("12.5")) == Decimal("12.50")


def test_percentage_discount_rounds_to_cents() -> None:
    coupon = _coupon(value=Decimal("15"))

    assert compute_discount(coupon, _order("33.33")) == Decimal("5.00")
    assert compute_discount(coupon, _order("0")) == Decimal("0.00")


def test_compute_discount_does_not_mutate_coupon() -> None:
    coupon = _coupon(usage_limit=5, usage_count=2)

    compute_discount(coupon, _order())
    evaluate_coupon(coupon, _order(), now=NOW)

    assert coupon.usage_count == 2


def test_every_reason_has_a_message() -> None:
    assert set(REASON_MESSAGES) == set(EligibilityReason)


def test_evaluate_coupon_reports_discount_and_final_amount() -> None:
    result = evaluate_coupon(_coupon(minimum_amount=Decimal("100")), _order("150"), now=NOW)

    assert result.eligible is True
    assert result.discount_amount == Decimal("30.00")
    assert result.final_amount == Decimal("120.00")
    assert result.message is None
    assert metrics.snapshot() == {"coupons_evaluated": 1}


def test_evaluate_coupon_rejection_has_message_and_no_discount() -> None:
    result = evaluate_coupon(_coupon(minimum_amount=Decimal("100")), _order("50"), now=NOW)

    assert result.eligible is False
    assert result.reason == EligibilityReason.BELOW_MINIMUM
    assert result.message == REASON_MESSAGES[EligibilityReason.BELOW_MINIMUM]
    assert result.discount_amount == Decimal("0")
    assert result.final_amount == Decimal("50.00")
    snap = metrics.snapshot()
    assert snap["coupons_rejected"] == 1
    assert snap["coupons_rejected.below_minimum"] == 1


def test_evaluate_free_shipping_keeps_order_amount() -> None:
    coupon = _coupon(type=CouponType.free_shipping, value=Decimal("0"))

    result = evaluate_coupon(coupon, _order("80"), now=NOW, shipping_cost=Decimal("15"))

    assert result.discount_amount == Decimal("15.00")
    assert result.final_amount == Decimal("80.00")
