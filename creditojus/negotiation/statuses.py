from __future__ import annotations

from enum import Enum
from typing import FrozenSet


class ProcessStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    ACTIVE = "active"
    REJECTED = "rejected"
    OFFER_ACCEPTED = "offer_accepted"
    IN_TRANSACTION = "in_transaction"
    SOLD = "sold"
    ARCHIVED = "archived"


class OfferStatus(str, Enum):
    PENDING = "pending"
    NEGOTIATING = "negotiating"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    IN_TRANSACTION = "in_transaction"
    COMPLETED = "completed"


class TransactionStatus(str, Enum):
    STARTED = "started"
    CONTRACT_SENT = "contract_sent"
    CONTRACT_SIGNED = "contract_signed"
    AWAITING_PAYMENT = "awaiting_payment"
    PAYMENT_REGISTERED = "payment_registered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # Declared for completeness; no operation transitions into it.
    REFUNDED = "refunded"


class NegotiationKind(str, Enum):
    OFFER = "offer"
    COUNTER_OFFER = "counter_offer"
    ACCEPTANCE = "acceptance"
    REFUSAL = "refusal"


class Role(str, Enum):
    SELLER = "seller"
    BUYER = "buyer"
    ADMIN = "admin"


class Party(str, Enum):
    """Who acted on a transaction: the two sides or the platform itself."""

    SELLER = "seller"
    BUYER = "buyer"
    SYSTEM = "system"


ACTIVE_OFFER_STATUSES: FrozenSet[OfferStatus] = frozenset({OfferStatus.PENDING, OfferStatus.NEGOTIATING})

OPEN_TRANSACTION_STATUSES: FrozenSet[TransactionStatus] = frozenset(
    {
        TransactionStatus.STARTED,
        TransactionStatus.CONTRACT_SENT,
        TransactionStatus.CONTRACT_SIGNED,
        TransactionStatus.AWAITING_PAYMENT,
    }
)

TERMINAL_TRANSACTION_STATUSES: FrozenSet[TransactionStatus] = frozenset(
    {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED, TransactionStatus.REFUNDED}
)


def values(enum_cls) -> tuple[str, ...]:
    return tuple(member.value for member in enum_cls)


def parse_status(enum_cls, raw: str | None):
    normalized = str(raw or "").strip().lower()
    if not normalized:
        return None
    try:
        return enum_cls(normalized)
    except ValueError:
        return None
