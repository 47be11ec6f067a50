from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, ROUND_HALF_UP, ROUND_UP
from typing import Literal

from eventcoupons.core.config import settings


MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyRounding = Literal["half_up", "half_even", "up", "down"]


_ROUNDING_MAP: dict[str, str] = {
    "half_up": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
    "up": ROUND_UP,
    "down": ROUND_DOWN,
}


def quantize_money(value: Decimal, *, rounding: MoneyRounding | None = None) -> Decimal:
    mode = _ROUNDING_MAP.get(str(rounding or settings.money_rounding), ROUND_HALF_UP)
    return Decimal(value).quantize(MONEY_QUANT, rounding=mode)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    return Decimal(amount) * Decimal(percent) / Decimal("100")


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    discount: Decimal
    service_fee: Decimal
    taxable_amount: Decimal
    tax: Decimal
    total: Decimal


def compute_service_fee(
    subtotal: Decimal,
    *,
    enabled: bool,
    fee_percent: Decimal,
    rounding: MoneyRounding | None = None,
) -> Decimal:
    if not enabled or fee_percent <= 0 or subtotal <= 0:
        return ZERO
    return quantize_money(percent_of(subtotal, fee_percent), rounding=rounding)


def compute_order_totals(
    subtotal: Decimal,
    discount: Decimal = ZERO,
    *,
    service_fee_enabled: bool | None = None,
    service_fee_percent: Decimal | None = None,
    tax_rate_percent: Decimal | None = None,
    rounding: MoneyRounding | None = None,
) -> PricingBreakdown:
    """Price an order after a coupon discount.

    The service fee is charged on the undiscounted subtotal; tax is charged on
    ``subtotal + fee - discount``. Settings supply any omitted rate.
    """
    if service_fee_enabled is None:
        service_fee_enabled = settings.service_fee_enabled
    if service_fee_percent is None:
        service_fee_percent = settings.service_fee_percent
    if tax_rate_percent is None:
        tax_rate_percent = settings.tax_rate_percent

    subtotal_q = quantize_money(subtotal, rounding=rounding)
    discount_q = quantize_money(discount, rounding=rounding) if discount > 0 else ZERO
    fee = compute_service_fee(subtotal_q, enabled=service_fee_enabled, fee_percent=Decimal(service_fee_percent), rounding=rounding)

    taxable = subtotal_q + fee - discount_q
    if taxable < 0:
        taxable = ZERO
    tax = ZERO
    if tax_rate_percent > 0 and taxable > 0:
        tax = quantize_money(percent_of(taxable, Decimal(tax_rate_percent)), rounding=rounding)

    total = quantize_money(taxable + tax, rounding=rounding)
    return PricingBreakdown(
        subtotal=subtotal_q,
        discount=discount_q,
        service_fee=fee,
        taxable_amount=quantize_money(taxable, rounding=rounding),
        tax=tax,
        total=total,
    )
