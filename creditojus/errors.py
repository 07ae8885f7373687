from __future__ import annotations

from typing import Any, Dict

from creditojus.ui_strings import action_verb, error_message


class AppError(Exception):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True

    def __init__(
        self,
        code: str | None = None,
        message_key: str | None = None,
        http_status: int | None = None,
        critical: bool | None = None,
        details: str | None = None,
        payload: Dict[str, Any] | None = None,
        params: Dict[str, Any] | None = None,
    ) -> None:
        self.code = (code or self.default_code).strip()
        self.message_key = (message_key or self.default_message_key).strip()
        self.http_status = int(http_status or self.default_http_status)
        self.critical = bool(self.default_critical if critical is None else critical)
        self.details = (details or "").strip() or None
        self.payload = dict(payload or {})
        self.params = dict(params or {})
        super().__init__(self.details or self.code)

    def user_message(self) -> str:
        fallback = error_message("unexpected_error", "Nao foi possivel concluir a operacao.")
        template = error_message(self.message_key, fallback)
        if not self.params:
            return template
        try:
            return template.format(**self.params)
        except (KeyError, IndexError, ValueError):
            return template

    def to_response_payload(self, request_id: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.code,
            "message": self.user_message(),
            "request_id": request_id,
        }
        if self.payload:
            payload.update(self.payload)
        return payload


class UserActionError(AppError):
    default_code = "action_invalid"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class ValidationError(UserActionError):
    default_code = "validation_error"
    default_message_key = "action_invalid"
    default_http_status = 400
    default_critical = False


class AuthenticationError(UserActionError):
    default_code = "auth_required"
    default_message_key = "auth_required"
    default_http_status = 401
    default_critical = False


class PermissionError(UserActionError):
    default_code = "permission_denied"
    default_message_key = "permission_denied"
    default_http_status = 403
    default_critical = False


class NotFoundError(UserActionError):
    default_code = "not_found"
    default_message_key = "unexpected_error"
    default_http_status = 404
    default_critical = False


class InvalidStateError(UserActionError):
    """Operation not allowed from the entity's current status.

    The current status is echoed in the message and in the payload.
    """

    default_code = "invalid_state"
    default_message_key = "offer_status_invalid"
    default_http_status = 400
    default_critical = False

    def __init__(self, current_status: str, action: str, **kwargs: Any) -> None:
        params = dict(kwargs.pop("params", None) or {})
        params.setdefault("status", current_status)
        params.setdefault("action", action_verb(action))
        payload = dict(kwargs.pop("payload", None) or {})
        payload.setdefault("status", current_status)
        self.current_status = current_status
        self.action = action
        super().__init__(params=params, payload=payload, **kwargs)


class ConflictError(UserActionError):
    default_code = "conflict"
    default_message_key = "unexpected_error"
    default_http_status = 409
    default_critical = False


class SystemError(AppError):
    default_code = "system_error"
    default_message_key = "unexpected_error"
    default_http_status = 500
    default_critical = True
