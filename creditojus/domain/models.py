from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping

from creditojus.domain.values import parse_datetime, to_decimal, to_iso
from creditojus.negotiation.statuses import (
    ACTIVE_OFFER_STATUSES,
    OPEN_TRANSACTION_STATUSES,
    NegotiationKind,
    OfferStatus,
    Party,
    ProcessStatus,
    TransactionStatus,
)
from creditojus.ui_strings import status_label


def _amount_out(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


@dataclass(frozen=True)
class StatusEntry:
    status: str
    note: str | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StatusEntry":
        return cls(status=row["status"], note=row.get("note"), created_at=parse_datetime(row.get("created_at")))

    def to_payload(self) -> Dict[str, Any]:
        return {"status": self.status, "note": self.note, "created_at": to_iso(self.created_at)}


@dataclass(frozen=True)
class NegotiationEntry:
    kind: NegotiationKind
    recorded_by: Party | None
    amount: Decimal | None
    message: str | None
    special_terms: str | None
    created_at: datetime | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "NegotiationEntry":
        return cls(
            kind=NegotiationKind(row["kind"]),
            recorded_by=Party(row["recorded_by"]) if row.get("recorded_by") else None,
            amount=to_decimal(row.get("amount")),
            message=row.get("message"),
            special_terms=row.get("special_terms"),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "recorded_by": self.recorded_by.value if self.recorded_by else None,
            "amount": _amount_out(self.amount),
            "message": self.message,
            "special_terms": self.special_terms,
            "created_at": to_iso(self.created_at),
        }


@dataclass(frozen=True)
class Process:
    id: int
    owner_id: str
    status: ProcessStatus
    has_offers: bool
    accepted_offer_id: int | None
    accepts_offers_flag: bool = True
    title: str | None = None
    estimated_value: Decimal | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Process":
        accepted = row.get("accepted_offer_id")
        return cls(
            id=int(row["id"]),
            owner_id=str(row["owner_id"]),
            status=ProcessStatus(row["status"]),
            has_offers=bool(row.get("has_offers")),
            accepted_offer_id=int(accepted) if accepted is not None else None,
            accepts_offers_flag=bool(row.get("accepts_offers", True)),
            title=row.get("title"),
            estimated_value=to_decimal(row.get("estimated_value")),
        )

    def accepts_offers(self) -> bool:
        return self.status == ProcessStatus.ACTIVE and self.accepts_offers_flag

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "title": self.title,
            "status": self.status.value,
            "status_label": status_label("processo", self.status.value),
            "estimated_value": _amount_out(self.estimated_value),
            "has_offers": self.has_offers,
            "accepted_offer_id": self.accepted_offer_id,
        }


@dataclass(frozen=True)
class Offer:
    id: int
    process_id: int
    seller_id: str
    buyer_id: str
    amount: Decimal
    message: str | None
    special_terms: str | None
    status: OfferStatus
    valid_until: datetime | None
    created_at: datetime | None
    updated_at: datetime | None = None
    status_history: tuple[StatusEntry, ...] = ()
    negotiation_history: tuple[NegotiationEntry, ...] = ()

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        status_history: Iterable[Mapping[str, Any]] = (),
        negotiation_history: Iterable[Mapping[str, Any]] = (),
    ) -> "Offer":
        return cls(
            id=int(row["id"]),
            process_id=int(row["process_id"]),
            seller_id=str(row["seller_id"]),
            buyer_id=str(row["buyer_id"]),
            amount=to_decimal(row["amount"]),
            message=row.get("message"),
            special_terms=row.get("special_terms"),
            status=OfferStatus(row["status"]),
            valid_until=parse_datetime(row.get("valid_until")),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
            status_history=tuple(StatusEntry.from_row(item) for item in status_history),
            negotiation_history=tuple(NegotiationEntry.from_row(item) for item in negotiation_history),
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_OFFER_STATUSES

    def is_valid(self, now: datetime) -> bool:
        if self.valid_until is None:
            return True
        return now <= self.valid_until

    def can_be_updated(self, now: datetime) -> bool:
        return self.is_active and self.is_valid(now)

    def party_of(self, user_id: str) -> Party | None:
        if user_id == self.seller_id:
            return Party.SELLER
        if user_id == self.buyer_id:
            return Party.BUYER
        return None

    def to_payload(self, now: datetime) -> Dict[str, Any]:
        return {
            "id": self.id,
            "process_id": self.process_id,
            "seller_id": self.seller_id,
            "buyer_id": self.buyer_id,
            "amount": _amount_out(self.amount),
            "message": self.message,
            "special_terms": self.special_terms,
            "status": self.status.value,
            "status_label": status_label("oferta", self.status.value),
            "valid_until": to_iso(self.valid_until),
            "is_expired": not self.is_valid(now),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
            "status_history": [entry.to_payload() for entry in self.status_history],
            "negotiation_history": [entry.to_payload() for entry in self.negotiation_history],
        }


@dataclass(frozen=True)
class Document:
    id: int
    name: str
    mime_type: str | None
    path: str
    size: int
    submitted_by: Party
    uploaded_at: datetime | None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Document":
        return cls(
            id=int(row["id"]),
            name=row["name"],
            mime_type=row.get("mime_type"),
            path=row["path"],
            size=int(row.get("size") or 0),
            submitted_by=Party(row["submitted_by"]),
            uploaded_at=parse_datetime(row.get("uploaded_at")),
        )

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "mime_type": self.mime_type,
            "path": self.path,
            "size": self.size,
            "submitted_by": self.submitted_by.value,
            "uploaded_at": to_iso(self.uploaded_at),
        }


@dataclass(frozen=True)
class Transaction:
    id: int
    offer_id: int
    process_id: int
    seller_id: str
    buyer_id: str
    amount: Decimal
    commission: Decimal
    net_amount: Decimal
    status: TransactionStatus
    created_at: datetime | None
    payment_date: datetime | None = None
    payment_proof: str | None = None
    payment_note: str | None = None
    completion_date: datetime | None = None
    cancellation_date: datetime | None = None
    cancellation_reason: str | None = None
    cancelled_by: Party | None = None
    status_history: tuple[StatusEntry, ...] = ()
    documents: tuple[Document, ...] = field(default_factory=tuple)

    @classmethod
    def from_row(
        cls,
        row: Mapping[str, Any],
        status_history: Iterable[Mapping[str, Any]] = (),
        documents: Iterable[Mapping[str, Any]] = (),
    ) -> "Transaction":
        cancelled_by = row.get("cancelled_by")
        return cls(
            id=int(row["id"]),
            offer_id=int(row["offer_id"]),
            process_id=int(row["process_id"]),
            seller_id=str(row["seller_id"]),
            buyer_id=str(row["buyer_id"]),
            amount=to_decimal(row["amount"]),
            commission=to_decimal(row["commission"]),
            net_amount=to_decimal(row["net_amount"]),
            status=TransactionStatus(row["status"]),
            created_at=parse_datetime(row.get("created_at")),
            payment_date=parse_datetime(row.get("payment_date")),
            payment_proof=row.get("payment_proof"),
            payment_note=row.get("payment_note"),
            completion_date=parse_datetime(row.get("completion_date")),
            cancellation_date=parse_datetime(row.get("cancellation_date")),
            cancellation_reason=row.get("cancellation_reason"),
            cancelled_by=Party(cancelled_by) if cancelled_by else None,
            status_history=tuple(StatusEntry.from_row(item) for item in status_history),
            documents=tuple(Document.from_row(item) for item in documents),
        )

    def party_of(self, user_id: str) -> Party | None:
        if user_id == self.seller_id:
            return Party.SELLER
        if user_id == self.buyer_id:
            return Party.BUYER
        return None

    def can_be_completed(self) -> bool:
        return self.status == TransactionStatus.PAYMENT_REGISTERED

    def can_be_cancelled(self) -> bool:
        return self.status in OPEN_TRANSACTION_STATUSES

    @property
    def commission_percent(self) -> Decimal:
        if not self.amount:
            return Decimal("0")
        return (self.commission / self.amount * 100).quantize(Decimal("0.01"))

    @property
    def seller_documents(self) -> tuple[Document, ...]:
        return tuple(doc for doc in self.documents if doc.submitted_by == Party.SELLER)

    @property
    def buyer_documents(self) -> tuple[Document, ...]:
        return tuple(doc for doc in self.documents if doc.submitted_by == Party.BUYER)

    def to_payload(self, viewer_id: str | None = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "offer_id": self.offer_id,
            "process_id": self.process_id,
            "seller_id": self.seller_id,
            "buyer_id": self.buyer_id,
            "amount": _amount_out(self.amount),
            "commission": _amount_out(self.commission),
            "commission_percent": _amount_out(self.commission_percent),
            "net_amount": _amount_out(self.net_amount),
            "status": self.status.value,
            "status_label": status_label("transacao", self.status.value),
            "created_at": to_iso(self.created_at),
            "payment_date": to_iso(self.payment_date),
            "payment_proof": self.payment_proof,
            "payment_note": self.payment_note,
            "completion_date": to_iso(self.completion_date),
            "cancellation_date": to_iso(self.cancellation_date),
            "cancellation_reason": self.cancellation_reason,
            "cancelled_by": self.cancelled_by.value if self.cancelled_by else None,
            "status_history": [entry.to_payload() for entry in self.status_history],
            "documents": [doc.to_payload() for doc in self.documents],
        }
        if viewer_id is not None:
            payload["is_seller"] = viewer_id == self.seller_id
        return payload
