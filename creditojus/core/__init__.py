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
    get_event_bus,
    reset_event_bus_for_tests,
)

__all__ = [
    "ALL_EVENT_TYPES",
    "DomainEvent",
    "EventBus",
    "OfferCreated",
    "OfferAccepted",
    "OfferRejected",
    "OfferCancelled",
    "CounterOfferMade",
    "CounterOfferAnswered",
    "TransactionStarted",
    "ContractSubmitted",
    "PaymentRegistered",
    "TransactionCompleted",
    "TransactionCancelled",
    "get_event_bus",
    "reset_event_bus_for_tests",
]
