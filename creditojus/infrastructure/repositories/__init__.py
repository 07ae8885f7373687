from .base import BaseRepository
from .offer_repository import OfferRepository
from .process_repository import ProcessRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "BaseRepository",
    "OfferRepository",
    "ProcessRepository",
    "TransactionRepository",
]
