from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List


@dataclass(frozen=True)
class ServiceOutput:
    payload: Dict[str, Any]
    status_code: int = 200


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as produced by the bearer-token verifier."""

    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class OfferCreateInput:
    process_id: int
    amount: Decimal
    message: str | None = None
    special_terms: str | None = None
    valid_until: datetime | None = None


@dataclass(frozen=True)
class CounterOfferInput:
    offer_id: int
    amount: Decimal
    message: str | None = None
    special_terms: str | None = None
    valid_until: datetime | None = None


@dataclass(frozen=True)
class CounterResponseInput:
    offer_id: int
    action: str
    amount: Decimal | None = None
    message: str | None = None
    special_terms: str | None = None
    valid_until: datetime | None = None


@dataclass(frozen=True)
class OfferListFilter:
    status: str | None = None
    process_id: int | None = None


@dataclass(frozen=True)
class StoredDocument:
    name: str
    mime_type: str | None
    size: int
    path: str


@dataclass(frozen=True)
class ContractSubmissionInput:
    transaction_id: int
    documents: List[StoredDocument] = field(default_factory=list)


@dataclass(frozen=True)
class PaymentInput:
    transaction_id: int
    proof: str | None
    note: str | None = None
