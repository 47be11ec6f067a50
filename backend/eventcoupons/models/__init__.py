from eventcoupons.models.coupon import (  # noqa: F401
    Coupon,
    CouponStatus,
    CouponType,
    CouponUsage,
    DisplayStatus,
    OrderContext,
    PriceRange,
)

__all__ = [
    "Coupon",
    "CouponStatus",
    "CouponType",
    "CouponUsage",
    "DisplayStatus",
    "OrderContext",
    "PriceRange",
]
