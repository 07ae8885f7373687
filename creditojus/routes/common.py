from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

from flask import Blueprint, current_app, request

from creditojus.domain.values import parse_datetime, to_decimal
from creditojus.errors import NotFoundError, ValidationError


# Largest id a BIGINT or sqlite INTEGER column can hold.
MAX_RECORD_ID = 2**63 - 1


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def optional_text(payload: Dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_amount(raw: Any) -> Decimal | None:
    # Positivity is checked by the engines, after existence and state checks.
    if raw is None or raw == "":
        return None
    return to_decimal(raw)


def parse_valid_until(raw: Any) -> datetime | None:
    if raw is None or raw == "":
        return None
    parsed = parse_datetime(raw)
    if parsed is None:
        raise ValidationError(code="valid_until_invalid", message_key="valid_until_invalid")
    return parsed


def parse_int(raw: Any, *, code: str, message_key: str) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(code=code, message_key=message_key) from None
    if value <= 0 or value > MAX_RECORD_ID:
        raise ValidationError(code=code, message_key=message_key)
    return value


def optional_int_arg(name: str) -> int | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(code="status_filter_invalid", message_key="status_filter_invalid") from None
    if abs(value) > MAX_RECORD_ID:
        raise ValidationError(code="status_filter_invalid", message_key="status_filter_invalid")
    return value


def config_value(key: str, default: Any = None) -> Any:
    return current_app.config.get(key, default)


def guard_path_ids(blueprint: Blueprint, **not_found_keys: str) -> None:
    """Answer NotFound for path ids no row can have, after authentication ran."""

    @blueprint.before_request
    def _guard_path_ids():
        view_args = request.view_args or {}
        for name, message_key in not_found_keys.items():
            value = view_args.get(name)
            if value is not None and value > MAX_RECORD_ID:
                raise NotFoundError(code=message_key, message_key=message_key)
        return None
