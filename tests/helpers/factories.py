from __future__ import annotations

from decimal import Decimal

from creditojus.auth import issue_token
from creditojus.domain.contracts import OfferCreateInput, Principal
from creditojus.infrastructure.repositories import ProcessRepository


SELLER = Principal(user_id="seller-1", role="seller")
BUYER = Principal(user_id="buyer-1", role="buyer")
OTHER_BUYER = Principal(user_id="buyer-2", role="buyer")
THIRD_BUYER = Principal(user_id="buyer-3", role="buyer")
STRANGER = Principal(user_id="buyer-9", role="buyer")
ADMIN = Principal(user_id="admin-1", role="admin")


def seed_process(db, *, owner_id: str = SELLER.user_id, status: str = "active", accepts_offers: bool = True) -> int:
    return ProcessRepository().create(
        db,
        owner_id=owner_id,
        status=status,
        title="Precatorio federal",
        estimated_value="150000.00",
        accepts_offers=accepts_offers,
    )


def offer_input(process_id: int, amount: str = "1000.00", **kwargs) -> OfferCreateInput:
    return OfferCreateInput(process_id=process_id, amount=Decimal(amount), **kwargs)


def auth_headers(principal: Principal, secret: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(principal, secret)}"}
