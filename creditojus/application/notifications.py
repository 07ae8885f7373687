from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Type

from creditojus.core.event_bus import (
    ALL_EVENT_TYPES,
    ContractSubmitted,
    CounterOfferAnswered,
    CounterOfferMade,
    DomainEvent,
    EventBus,
    OfferAccepted,
    OfferCancelled,
    OfferCreated,
    OfferRejected,
    PaymentRegistered,
    TransactionCancelled,
    TransactionCompleted,
    TransactionStarted,
)


LOGGER = logging.getLogger("creditojus.notifications")


def _seller(event: DomainEvent) -> str:
    return event.seller_id


def _buyer(event: DomainEvent) -> str:
    return event.buyer_id


def _counterparty(event: DomainEvent) -> str:
    return event.buyer_id if event.actor_id == event.seller_id else event.seller_id


RECIPIENTS: Dict[Type[DomainEvent], Callable[[DomainEvent], str]] = {
    OfferCreated: _seller,
    OfferAccepted: _buyer,
    OfferRejected: _buyer,
    OfferCancelled: _seller,
    CounterOfferMade: _buyer,
    CounterOfferAnswered: _seller,
    TransactionStarted: _counterparty,
    ContractSubmitted: _counterparty,
    PaymentRegistered: _seller,
    TransactionCompleted: _buyer,
    TransactionCancelled: _counterparty,
}


class Notifier:
    """Fire-and-forget user notifications fed by domain events."""

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = bool(enabled)
        self._lock = threading.Lock()
        self._registered = False

    def register_event_handlers(self, event_bus: EventBus) -> None:
        with self._lock:
            if self._registered:
                return
            self._registered = True
        event_bus.subscribe_all(ALL_EVENT_TYPES, self.on_event)

    def on_event(self, event: DomainEvent) -> None:
        resolve = RECIPIENTS.get(type(event))
        if resolve is None:
            return
        self.notify(resolve(event), type(event).__name__, event.to_payload())

    def notify(self, user_id: str, event: str, payload: dict) -> None:
        if not self.enabled or not user_id:
            return
        LOGGER.info(
            "notification_dispatched",
            extra={"recipient_id": user_id, "event_type": event, "event_id": payload.get("event_id")},
        )


_DEFAULT_NOTIFIER = Notifier()


def _dispatch(event: DomainEvent) -> None:
    _DEFAULT_NOTIFIER.on_event(event)


def register_default_notifier(event_bus: EventBus, *, enabled: bool = True) -> Notifier:
    """Subscribe the process-wide notifier; repeated app factories share one subscription."""
    _DEFAULT_NOTIFIER.enabled = bool(enabled)
    event_bus.subscribe_all(ALL_EVENT_TYPES, _dispatch)
    return _DEFAULT_NOTIFIER
