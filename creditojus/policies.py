from __future__ import annotations

from typing import Dict, Iterable, Set

from creditojus.domain.contracts import Principal
from creditojus.errors import PermissionError as AppPermissionError


VALID_ROLES: Set[str] = {"seller", "buyer", "admin"}

ROLE_ALIASES: Dict[str, str] = {
    "vendedor": "seller",
    "comprador": "buyer",
    "administrador": "admin",
}


def normalize_role(role: str | None, default: str = "") -> str:
    normalized = str(role or "").strip().lower()
    normalized = ROLE_ALIASES.get(normalized, normalized)
    if normalized in VALID_ROLES:
        return normalized
    return default if default in VALID_ROLES else ""


def normalize_allowed_roles(roles: Iterable[str]) -> Set[str]:
    allowed: Set[str] = set()
    for role in roles:
        normalized = normalize_role(role)
        if normalized:
            allowed.add(normalized)
    return allowed


def has_any_role(role: str | None, allowed_roles: Iterable[str]) -> bool:
    allowed = normalize_allowed_roles(allowed_roles)
    return not allowed or normalize_role(role) in allowed


def require_roles(principal: Principal, *allowed_roles: str) -> str:
    if has_any_role(principal.role, allowed_roles):
        return normalize_role(principal.role)
    raise AppPermissionError(
        code="permission_denied",
        message_key="permission_denied",
        http_status=403,
        critical=False,
    )
