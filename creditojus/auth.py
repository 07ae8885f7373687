from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from flask import current_app, g, request
from jose import JWTError, jwt

from creditojus.domain.contracts import Principal
from creditojus.errors import AuthenticationError
from creditojus.policies import normalize_role


LOGGER = logging.getLogger("creditojus.auth")

PUBLIC_PATHS = {"/health"}


def register_auth(app) -> None:
    @app.before_request
    def _load_principal():
        g.principal = None
        if request.path in PUBLIC_PATHS or request.method == "OPTIONS":
            return None
        if not app.config.get("AUTH_ENABLED", True):
            return None
        g.principal = verify_bearer(request.headers.get("Authorization"))
        return None


def verify_bearer(authorization: str | None) -> Principal:
    """Decode ``Authorization: Bearer <jwt>`` into the calling principal."""
    if not authorization:
        raise AuthenticationError()
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError(code="auth_invalid_token", message_key="auth_invalid_token")

    try:
        claims = jwt.decode(
            parts[1],
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
        )
    except JWTError as exc:
        LOGGER.info("auth_token_rejected", extra={"reason": str(exc)})
        raise AuthenticationError(code="auth_invalid_token", message_key="auth_invalid_token") from exc

    user_id = str(claims.get("sub") or claims.get("userId") or "").strip()
    role = normalize_role(claims.get("role") or claims.get("tipo"))
    if not user_id or not role:
        raise AuthenticationError(code="auth_invalid_token", message_key="auth_invalid_token")
    return Principal(user_id=user_id, role=role)


def issue_token(principal: Principal, secret: str, *, algorithm: str = "HS256", ttl_minutes: int = 60) -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
    claims = {"sub": principal.user_id, "role": principal.role, "exp": int(expires.timestamp())}
    return jwt.encode(claims, secret, algorithm=algorithm)


def current_principal() -> Principal:
    principal = getattr(g, "principal", None)
    if principal is None:
        # Auth disabled: identity comes from trusted headers set by an upstream gateway.
        user_id = str(request.headers.get("X-User-Id") or "").strip()
        role = normalize_role(request.headers.get("X-User-Role"))
        if not user_id or not role:
            raise AuthenticationError()
        principal = Principal(user_id=user_id, role=role)
        g.principal = principal
    return principal
