from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Dict, Iterable, List, Type

from creditojus.observability import observe_domain_event_emitted


EventHandler = Callable[["DomainEvent"], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    occurred_at: datetime = field(default_factory=_utc_now)
    seller_id: str
    buyer_id: str
    actor_id: str = ""

    def __post_init__(self) -> None:
        normalized_event_id = str(self.event_id or "").strip() or uuid.uuid4().hex
        normalized_occurred_at = self.occurred_at if isinstance(self.occurred_at, datetime) else _utc_now()
        if normalized_occurred_at.tzinfo is None:
            normalized_occurred_at = normalized_occurred_at.replace(tzinfo=timezone.utc)
        object.__setattr__(self, "event_id", normalized_event_id)
        object.__setattr__(self, "occurred_at", normalized_occurred_at.astimezone(timezone.utc))

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {}
        for key, value in asdict(self).items():
            if isinstance(value, datetime):
                payload[key] = value.isoformat().replace("+00:00", "Z")
            else:
                payload[key] = value
        return payload


@dataclass(frozen=True, kw_only=True)
class OfferCreated(DomainEvent):
    offer_id: int
    process_id: int
    amount: str


@dataclass(frozen=True, kw_only=True)
class OfferAccepted(DomainEvent):
    offer_id: int
    process_id: int
    auto_rejected_offer_ids: tuple[int, ...] = ()


@dataclass(frozen=True, kw_only=True)
class OfferRejected(DomainEvent):
    offer_id: int
    process_id: int
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class OfferCancelled(DomainEvent):
    offer_id: int
    process_id: int
    reason: str = ""


@dataclass(frozen=True, kw_only=True)
class CounterOfferMade(DomainEvent):
    offer_id: int
    amount: str


@dataclass(frozen=True, kw_only=True)
class CounterOfferAnswered(DomainEvent):
    offer_id: int
    action: str
    status: str


@dataclass(frozen=True, kw_only=True)
class TransactionStarted(DomainEvent):
    transaction_id: int
    offer_id: int
    process_id: int
    amount: str


@dataclass(frozen=True, kw_only=True)
class ContractSubmitted(DomainEvent):
    transaction_id: int
    submitted_by: str
    documents: int
    status: str


@dataclass(frozen=True, kw_only=True)
class PaymentRegistered(DomainEvent):
    transaction_id: int


@dataclass(frozen=True, kw_only=True)
class TransactionCompleted(DomainEvent):
    transaction_id: int
    offer_id: int
    process_id: int


@dataclass(frozen=True, kw_only=True)
class TransactionCancelled(DomainEvent):
    transaction_id: int
    offer_id: int
    process_id: int
    cancelled_by: str
    reason: str


class EventBus:
    def __init__(self) -> None:
        self._lock = RLock()
        self._handlers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._logger = logging.getLogger("creditojus.events")

    def subscribe(self, event_type: Type[DomainEvent], handler: EventHandler) -> None:
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)

    def subscribe_all(self, event_types: Iterable[Type[DomainEvent]], handler: EventHandler) -> None:
        for event_type in event_types:
            self.subscribe(event_type, handler)

    def publish(self, event: DomainEvent) -> None:
        observe_domain_event_emitted(type(event).__name__)
        with self._lock:
            handlers = list(self._handlers.get(type(event), []))
        for handler in handlers:
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                self._logger.exception("event_handler_failed", extra={"event_type": type(event).__name__})

    def publish_all(self, events: Iterable[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()


ALL_EVENT_TYPES: tuple[Type[DomainEvent], ...] = (
    OfferCreated,
    OfferAccepted,
    OfferRejected,
    OfferCancelled,
    CounterOfferMade,
    CounterOfferAnswered,
    TransactionStarted,
    ContractSubmitted,
    PaymentRegistered,
    TransactionCompleted,
    TransactionCancelled,
)


_DEFAULT_EVENT_BUS = EventBus()


def get_event_bus() -> EventBus:
    return _DEFAULT_EVENT_BUS


def reset_event_bus_for_tests() -> None:
    _DEFAULT_EVENT_BUS.clear()
