from collections import Counter
from threading import Lock
from typing import Dict, Counter as CounterType

_metrics: CounterType[str] = Counter()
_lock = Lock()


def _inc(key: str) -> None:
    with _lock:
        _metrics[key] += 1


def record_coupon_evaluated() -> None:
    _inc("coupons_evaluated")


def record_coupon_rejected(reason: str) -> None:
    _inc("coupons_rejected")
    _inc(f"coupons_rejected.{reason.lower()}")


def record_definition_rejected() -> None:
    _inc("definitions_rejected")


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_metrics)


def reset() -> None:
    with _lock:
        _metrics.clear()
