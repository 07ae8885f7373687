from .notifications import Notifier
from .offer_service import OfferService
from .transaction_service import TransactionService

__all__ = ["Notifier", "OfferService", "TransactionService"]
