import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


class CouponType(str, enum.Enum):
    percentage = "percentage"
    fixed_amount = "fixed_amount"
    free_shipping = "free_shipping"


class CouponStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    expired = "expired"


class DisplayStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    expired = "expired"
    used_up = "used_up"


@dataclass(frozen=True)
class PriceRange:
    min: Decimal | None = None
    max: Decimal | None = None

    def contains(self, amount: Decimal) -> bool:
        if self.min is not None and amount < self.min:
            return False
        if self.max is not None and amount > self.max:
            return False
        return True


@dataclass(frozen=True)
class Coupon:
    code: str
    type: CouponType
    value: Decimal
    valid_from: datetime
    valid_until: datetime
    name: str = ""
    description: str | None = None
    currency: str | None = None
    minimum_amount: Decimal | None = None
    maximum_discount: Decimal | None = None
    usage_limit: int | None = None
    user_usage_limit: int | None = None
    usage_count: int = 0
    first_time_only: bool = False
    applicable_events: frozenset[str] = field(default_factory=frozenset)
    excluded_events: frozenset[str] = field(default_factory=frozenset)
    applicable_categories: frozenset[str] = field(default_factory=frozenset)
    excluded_categories: frozenset[str] = field(default_factory=frozenset)
    applicable_vendors: frozenset[str] = field(default_factory=frozenset)
    excluded_vendors: frozenset[str] = field(default_factory=frozenset)
    applicable_event_types: frozenset[str] = field(default_factory=frozenset)
    price_range: PriceRange | None = None
    status: CouponStatus = CouponStatus.active
    is_active: bool = True
    featured: bool = False


@dataclass(frozen=True)
class OrderContext:
    """Facts about one checkout attempt; rebuilt for every validation call."""

    order_amount: Decimal
    event_ids: frozenset[str] = field(default_factory=frozenset)
    category_ids: frozenset[str] = field(default_factory=frozenset)
    vendor_ids: frozenset[str] = field(default_factory=frozenset)
    event_types: frozenset[str] = field(default_factory=frozenset)
    user_id: str | None = None
    is_first_time_user: bool = False
    # Prior redemptions of this coupon by user_id, when the caller knows them.
    user_usage_count: int | None = None


@dataclass(frozen=True)
class CouponUsage:
    user_id: str
    order_id: str
    used_at: datetime
    discount_amount: Decimal
