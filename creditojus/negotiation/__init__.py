from creditojus.negotiation.flow_policy import FLOW_POLICY, allowed_actions, can_transition
from creditojus.negotiation.statuses import (
    ACTIVE_OFFER_STATUSES,
    OPEN_TRANSACTION_STATUSES,
    NegotiationKind,
    OfferStatus,
    Party,
    ProcessStatus,
    Role,
    TransactionStatus,
)

__all__ = [
    "ACTIVE_OFFER_STATUSES",
    "FLOW_POLICY",
    "OPEN_TRANSACTION_STATUSES",
    "NegotiationKind",
    "OfferStatus",
    "Party",
    "ProcessStatus",
    "Role",
    "TransactionStatus",
    "allowed_actions",
    "can_transition",
]
