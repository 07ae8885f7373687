from __future__ import annotations

from typing import Dict, List

from creditojus.errors import InvalidStateError
from creditojus.errors import PermissionError as AppPermissionError


def _rule(actors: List[str], next_status: str) -> Dict[str, object]:
    return {"actors": actors, "next": next_status}


# stage -> current status -> action -> {actors, next}
FLOW_POLICY: Dict[str, Dict[str, Dict[str, Dict[str, object]]]] = {
    "oferta": {
        "pending": {
            "accept": _rule(["seller"], "accepted"),
            "reject": _rule(["seller"], "rejected"),
            "counter_offer": _rule(["seller"], "negotiating"),
            "cancel": _rule(["buyer"], "cancelled"),
        },
        "negotiating": {
            "accept": _rule(["seller"], "accepted"),
            "reject": _rule(["seller"], "rejected"),
            "counter_offer": _rule(["seller"], "negotiating"),
            "cancel": _rule(["buyer"], "cancelled"),
            "respond_accept": _rule(["buyer"], "pending"),
            "respond_refuse": _rule(["buyer"], "cancelled"),
            "respond_counter": _rule(["buyer"], "negotiating"),
        },
        "accepted": {
            "start": _rule(["seller", "buyer"], "in_transaction"),
        },
        "rejected": {},
        "cancelled": {},
        "in_transaction": {
            "confirm_receipt": _rule(["seller"], "completed"),
            "cancel_transaction": _rule(["seller", "buyer"], "cancelled"),
        },
        "completed": {},
    },
    "transacao": {
        "started": {
            "submit_contract": _rule(["seller", "buyer"], "contract_sent"),
            "cancel": _rule(["seller", "buyer"], "cancelled"),
        },
        # Moves to contract_signed only once both parties have submitted.
        "contract_sent": {
            "submit_contract": _rule(["seller", "buyer"], "contract_signed"),
            "cancel": _rule(["seller", "buyer"], "cancelled"),
        },
        "contract_signed": {
            "submit_contract": _rule(["seller", "buyer"], "contract_signed"),
            "register_payment": _rule(["buyer"], "payment_registered"),
            "cancel": _rule(["seller", "buyer"], "cancelled"),
        },
        "awaiting_payment": {
            "submit_contract": _rule(["seller", "buyer"], "awaiting_payment"),
            "register_payment": _rule(["buyer"], "payment_registered"),
            "cancel": _rule(["seller", "buyer"], "cancelled"),
        },
        "payment_registered": {
            "confirm_receipt": _rule(["seller"], "completed"),
        },
        "completed": {},
        "cancelled": {},
        "refunded": {},
    },
    "processo": {
        "active": {
            "accept_offer": _rule(["seller"], "offer_accepted"),
        },
        "offer_accepted": {
            "start": _rule(["seller", "buyer"], "in_transaction"),
        },
        "in_transaction": {
            "confirm_receipt": _rule(["seller"], "sold"),
            "cancel_transaction": _rule(["seller", "buyer"], "active"),
        },
    },
}


_INVALID_STATE_MESSAGES: Dict[str, str] = {
    "oferta": "offer_status_invalid",
    "transacao": "transaction_status_invalid",
    "processo": "process_status_invalid",
}


def _status_key(status) -> str:
    return str(getattr(status, "value", status) or "").strip()


def status_policy(stage: str, status) -> Dict[str, Dict[str, object]]:
    return FLOW_POLICY.get(stage, {}).get(_status_key(status), {})


def allowed_actions(stage: str, status) -> List[str]:
    return list(status_policy(stage, status).keys())


def can_transition(stage: str, current, action: str, actor: str, message_key: str | None = None) -> str:
    """Return the status reached by ``action`` from ``current``.

    Raises InvalidStateError when the current status does not allow the action
    and PermissionError when ``actor`` is not the side allowed to perform it.
    """
    current_key = _status_key(current)
    rule = status_policy(stage, current_key).get(action)
    if rule is None:
        message_key = message_key or _INVALID_STATE_MESSAGES.get(stage, "offer_status_invalid")
        verb = action.split("_", 1)[0] if action.startswith("respond_") else action
        raise InvalidStateError(current_key, verb, message_key=message_key)
    actors = rule.get("actors") or []
    if _status_key(actor) not in actors:
        raise AppPermissionError()
    return str(rule["next"])
