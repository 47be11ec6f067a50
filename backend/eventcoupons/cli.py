import argparse
import json
import re
import sys
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from eventcoupons.core.logging_config import configure_logging
from eventcoupons.schemas.coupons import MAX_MONEY_AMOUNT, OrderContextIn
from eventcoupons.services import coupon_rules, coupon_validation

SAFE_JSON_FILENAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\.json$")


def _normalize_json_filename(raw_path: str) -> str:
    raw = (raw_path or "").strip()
    if not raw:
        raise SystemExit("Path is required")
    if Path(raw).name != raw:
        raise SystemExit("Only JSON file names are allowed (no directories)")
    if not SAFE_JSON_FILENAME_RE.fullmatch(raw):
        raise SystemExit("Invalid JSON file name")
    return raw


def _resolve_json_path(raw_path: str) -> Path:
    raw = _normalize_json_filename(raw_path)
    resolved = (Path.cwd().resolve() / raw).resolve(strict=False)
    if not resolved.is_file():
        raise SystemExit(f"Input file not found: {resolved}")
    return resolved


def _load_json(raw_path: str) -> dict[str, Any]:
    path = _resolve_json_path(raw_path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"{path.name} is not valid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise SystemExit(f"{path.name} must contain a JSON object")
    return data


def _parse_now(raw: str | None) -> datetime:
    if not raw:
        return datetime.now(timezone.utc)
    try:
        return coupon_rules.as_utc(datetime.fromisoformat(raw))
    except ValueError as exc:
        raise SystemExit(f"Invalid --now timestamp: {raw}") from exc


def _parse_money(raw: str) -> Decimal:
    try:
        value = Decimal(raw)
    except InvalidOperation as exc:
        raise SystemExit(f"Invalid amount: {raw}") from exc
    if not value.is_finite():
        raise SystemExit(f"Invalid amount: {raw}")
    if value < 0:
        raise SystemExit("Amounts cannot be negative")
    if value > MAX_MONEY_AMOUNT:
        raise SystemExit(f"Amounts cannot exceed {MAX_MONEY_AMOUNT}")
    return value


def check_coupon(input_path: str) -> int:
    errors = coupon_validation.validate_coupon_definition(_load_json(input_path))
    if not errors:
        print("Coupon definition is valid")
        return 0
    for field, messages in sorted(errors.items()):
        for message in messages:
            print(f"{field}: {message}")
    return 1


def evaluate(coupon_path: str, order_path: str, *, shipping_cost: Decimal, now: datetime) -> int:
    try:
        coupon = coupon_validation.parse_coupon_definition(_load_json(coupon_path))
    except coupon_validation.CouponDefinitionError as exc:
        for field, messages in sorted(exc.errors.items()):
            print(f"{field}: {'; '.join(messages)}")
        return 2
    try:
        order = OrderContextIn.model_validate(_load_json(order_path)).to_model()
    except ValidationError as exc:
        for field, messages in sorted(coupon_validation.field_errors(exc).items()):
            print(f"order.{field}: {'; '.join(messages)}")
        return 2

    result = coupon_rules.evaluate_coupon(coupon, order, now=now, shipping_cost=shipping_cost)
    print(
        json.dumps(
            {
                "code": coupon.code,
                "eligible": result.eligible,
                "reason": result.reason.value if result.reason else None,
                "message": result.message,
                "discount_amount": str(result.discount_amount),
                "final_amount": str(result.final_amount),
            },
            indent=2,
        )
    )
    return 0 if result.eligible else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Coupon rules utilities")
    subparsers = parser.add_subparsers(dest="command")

    check_cmd = subparsers.add_parser("check-coupon", help="Validate a coupon definition JSON file")
    check_cmd.add_argument("--input", required=True, help="Coupon JSON file name")

    eval_cmd = subparsers.add_parser("evaluate", help="Check a coupon against an order and compute the discount")
    eval_cmd.add_argument("--coupon", required=True, help="Coupon JSON file name")
    eval_cmd.add_argument("--order", required=True, help="Order context JSON file name")
    eval_cmd.add_argument("--shipping-cost", default="0", help="Shipping cost used by free-shipping coupons")
    eval_cmd.add_argument("--now", default=None, help="Evaluation time (ISO 8601); defaults to the current time")
    return parser


def _run_cli_command(args: argparse.Namespace) -> int | None:
    if args.command == "check-coupon":
        return check_coupon(args.input)

    if args.command == "evaluate":
        return evaluate(
            args.coupon,
            args.order,
            shipping_cost=_parse_money(args.shipping_cost),
            now=_parse_now(args.now),
        )

    return None


def main() -> None:
    configure_logging(json_logs=False)
    parser = _build_parser()
    args = parser.parse_args()
    code = _run_cli_command(args)
    if code is None:
        parser.print_help()
        code = 2
    sys.exit(code)


if __name__ == "__main__":
    main()
