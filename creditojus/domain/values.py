from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

CENTS = Decimal("0.01")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_decimal(value: Any) -> Decimal | None:
    """Parse a monetary value, quantized to cents. Returns None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_db_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(value.quantize(CENTS, rounding=ROUND_HALF_UP))


def commission_for(amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal]:
    commission = (amount * rate).quantize(CENTS, rounding=ROUND_HALF_UP)
    return commission, amount - commission


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        resolved = value
    else:
        raw = str(value).strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            resolved = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if resolved.tzinfo is None:
        resolved = resolved.replace(tzinfo=timezone.utc)
    return resolved.astimezone(timezone.utc)


def to_iso(value: Any) -> str | None:
    resolved = parse_datetime(value)
    if resolved is None:
        return None
    return resolved.isoformat().replace("+00:00", "Z")


def to_db_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return parse_datetime(value).isoformat()


def default_valid_until(now: datetime, days: int) -> datetime:
    return now + timedelta(days=days)
