from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List

from creditojus.core.event_bus import (
    CounterOfferAnswered,
    CounterOfferMade,
    DomainEvent,
    EventBus,
    OfferAccepted,
    OfferCancelled,
    OfferCreated,
    OfferRejected,
    get_event_bus,
)
from creditojus.domain.contracts import (
    CounterOfferInput,
    CounterResponseInput,
    OfferCreateInput,
    OfferListFilter,
    Principal,
    ServiceOutput,
)
from creditojus.domain.models import Offer, Process
from creditojus.domain.values import default_valid_until, to_db_amount, to_db_timestamp, utc_now
from creditojus.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from creditojus.errors import PermissionError as AppPermissionError
from creditojus.infrastructure.repositories import OfferRepository, ProcessRepository
from creditojus.negotiation.flow_policy import can_transition
from creditojus.negotiation.statuses import (
    ACTIVE_OFFER_STATUSES,
    NegotiationKind,
    OfferStatus,
    Party,
    Role,
    parse_status,
)
from creditojus.observability import observe_transition
from creditojus.ui_strings import success_message


LOGGER = logging.getLogger("creditojus.offers")

AUTO_REJECT_NOTE = "Rejeitada automaticamente devido a aceitacao de outra oferta"
RESPONSE_ACTIONS = {"accept", "refuse", "counter"}

_ACTIVE_VALUES = [status.value for status in ACTIVE_OFFER_STATUSES]


class OfferService:
    """Offer lifecycle: creation, seller decisions and counter-offer exchanges.

    Every mutating operation runs inside ``db.transaction()``; events are
    published only after the unit of work commits.
    """

    def __init__(
        self,
        *,
        process_repository: ProcessRepository | None = None,
        offer_repository: OfferRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        validity_days: int = 7,
    ) -> None:
        self.processes = process_repository or ProcessRepository()
        self.offers = offer_repository or OfferRepository()
        self.event_bus = event_bus or get_event_bus()
        self.clock = clock or utc_now
        self.validity_days = int(validity_days)

    # Reads

    def load_offer(self, db, offer_id: int) -> Offer | None:
        row = self.offers.get(db, offer_id)
        if row is None:
            return None
        return Offer.from_row(
            row,
            self.offers.list_status_history(db, offer_id),
            self.offers.list_negotiation_history(db, offer_id),
        )

    def get_detail(self, db, *, principal: Principal, offer_id: int) -> ServiceOutput:
        offer = self.load_offer(db, offer_id)
        if offer is None:
            raise NotFoundError(code="offer_not_found", message_key="offer_not_found")
        if offer.party_of(principal.user_id) is None:
            raise AppPermissionError()
        process_row = self.processes.get(db, offer.process_id)
        payload = offer.to_payload(self.clock())
        if process_row is not None:
            payload["process"] = Process.from_row(process_row).to_payload()
        return ServiceOutput(payload={"oferta": payload})

    def list_received(self, db, *, principal: Principal, filters: OfferListFilter) -> ServiceOutput:
        return self._list_for_party(db, party_column="seller_id", principal=principal, filters=filters)

    def list_sent(self, db, *, principal: Principal, filters: OfferListFilter) -> ServiceOutput:
        return self._list_for_party(db, party_column="buyer_id", principal=principal, filters=filters)

    def _list_for_party(self, db, *, party_column: str, principal: Principal, filters: OfferListFilter) -> ServiceOutput:
        status = None
        if filters.status:
            status = parse_status(OfferStatus, filters.status)
            if status is None:
                raise ValidationError(code="status_filter_invalid", message_key="status_filter_invalid")
        rows = self.offers.list_for_party(
            db,
            party_column=party_column,
            user_id=principal.user_id,
            status=status.value if status else None,
            process_id=filters.process_id,
        )
        now = self.clock()
        offers = [
            Offer.from_row(
                row,
                self.offers.list_status_history(db, row["id"]),
                self.offers.list_negotiation_history(db, row["id"]),
            ).to_payload(now)
            for row in rows
        ]
        return ServiceOutput(payload={"ofertas": offers})

    # Writes

    def create(self, db, *, principal: Principal, create_input: OfferCreateInput) -> ServiceOutput:
        now = self.clock()
        stamp = to_db_timestamp(now)
        with db.transaction():
            process_row = self.processes.lock(db, create_input.process_id)
            if process_row is None:
                raise NotFoundError(code="process_not_found", message_key="process_not_found")
            process = Process.from_row(process_row)
            if not process.accepts_offers():
                raise InvalidStateError(
                    process.status.value,
                    "accept_offer",
                    code="process_not_available",
                    message_key="process_not_available",
                )
            if principal.role != Role.BUYER.value:
                raise AppPermissionError(code="buyer_only", message_key="buyer_only")

            existing = self.offers.find_for_buyer(db, process.id, principal.user_id, _ACTIVE_VALUES)
            if existing is not None:
                raise ConflictError(
                    code="offer_already_active",
                    message_key="offer_already_active",
                    payload={"offer_id": int(existing["id"])},
                )
            _require_positive(create_input.amount)

            valid_until = create_input.valid_until or default_valid_until(now, self.validity_days)
            offer_id = self.offers.create(
                db,
                process_id=process.id,
                seller_id=process.owner_id,
                buyer_id=principal.user_id,
                amount=to_db_amount(create_input.amount),
                message=create_input.message,
                special_terms=create_input.special_terms,
                status=OfferStatus.PENDING.value,
                valid_until=to_db_timestamp(valid_until),
                created_at=stamp,
            )
            self.offers.append_status_history(db, offer_id, OfferStatus.PENDING.value, "Oferta criada", stamp)
            if not process.has_offers:
                self.processes.set_has_offers(db, process.id, True, stamp)
            offer = self.load_offer(db, offer_id)

        self._after_commit(
            "offer_created",
            offer,
            [
                OfferCreated(
                    offer_id=offer.id,
                    process_id=offer.process_id,
                    seller_id=offer.seller_id,
                    buyer_id=offer.buyer_id,
                    actor_id=principal.user_id,
                    amount=str(offer.amount),
                )
            ],
        )
        return ServiceOutput(
            payload={"oferta": offer.to_payload(now), "message": success_message("offer_created")},
            status_code=201,
        )

    def accept(self, db, *, principal: Principal, offer_id: int, note: str | None = None) -> ServiceOutput:
        now = self.clock()
        stamp = to_db_timestamp(now)
        with db.transaction():
            offer, process = self._lock_offer_and_process(db, offer_id)
            self._require_party(offer, principal, Party.SELLER)
            next_status = can_transition("oferta", offer.status, "accept", Party.SELLER.value)
            process_next = can_transition("processo", process.status, "accept_offer", Party.SELLER.value)

            self.offers.update_status(db, offer.id, next_status, stamp)
            self.offers.append_status_history(db, offer.id, next_status, note or "Oferta aceita pelo vendedor", stamp)

            self.processes.update_status(db, process.id, process_next, stamp)
            self.processes.set_accepted_offer(db, process.id, offer.id, stamp)
            self.processes.append_status_history(db, process.id, process_next, "Oferta aceita pelo vendedor", stamp)

            siblings = self.offers.list_by_process_status(db, process.id, _ACTIVE_VALUES, exclude_offer_id=offer.id)
            for sibling in siblings:
                self.offers.update_status(db, sibling["id"], OfferStatus.REJECTED.value, stamp)
                self.offers.append_status_history(
                    db, sibling["id"], OfferStatus.REJECTED.value, AUTO_REJECT_NOTE, stamp
                )
            self._refresh_has_offers(db, process, stamp)
            updated = self.load_offer(db, offer.id)

        rejected_ids = tuple(int(sibling["id"]) for sibling in siblings)
        self._after_commit(
            "offer_accepted",
            updated,
            [
                OfferAccepted(
                    offer_id=updated.id,
                    process_id=updated.process_id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    auto_rejected_offer_ids=rejected_ids,
                )
            ]
            + [
                OfferRejected(
                    offer_id=int(sibling["id"]),
                    process_id=updated.process_id,
                    seller_id=updated.seller_id,
                    buyer_id=str(sibling["buyer_id"]),
                    actor_id=principal.user_id,
                    reason=AUTO_REJECT_NOTE,
                )
                for sibling in siblings
            ],
            auto_rejected=len(rejected_ids),
        )
        return ServiceOutput(payload={"oferta": updated.to_payload(now), "message": success_message("offer_accepted")})

    def reject(self, db, *, principal: Principal, offer_id: int, reason: str | None = None) -> ServiceOutput:
        return self._close(
            db,
            principal=principal,
            offer_id=offer_id,
            party=Party.SELLER,
            action="reject",
            note=reason or "Oferta rejeitada pelo vendedor",
            event_cls=OfferRejected,
            reason=reason,
            message_key="offer_rejected",
        )

    def cancel(self, db, *, principal: Principal, offer_id: int, reason: str | None = None) -> ServiceOutput:
        return self._close(
            db,
            principal=principal,
            offer_id=offer_id,
            party=Party.BUYER,
            action="cancel",
            note=reason or "Oferta cancelada pelo comprador",
            event_cls=OfferCancelled,
            reason=reason,
            message_key="offer_cancelled",
        )

    def _close(
        self,
        db,
        *,
        principal: Principal,
        offer_id: int,
        party: Party,
        action: str,
        note: str,
        event_cls,
        reason: str | None,
        message_key: str,
    ) -> ServiceOutput:
        now = self.clock()
        stamp = to_db_timestamp(now)
        with db.transaction():
            offer, process = self._lock_offer_and_process(db, offer_id)
            self._require_party(offer, principal, party)
            next_status = can_transition("oferta", offer.status, action, party.value)
            self.offers.update_status(db, offer.id, next_status, stamp)
            self.offers.append_status_history(db, offer.id, next_status, note, stamp)
            self._refresh_has_offers(db, process, stamp)
            updated = self.load_offer(db, offer.id)

        self._after_commit(
            f"offer_{next_status}",
            updated,
            [
                event_cls(
                    offer_id=updated.id,
                    process_id=updated.process_id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    reason=reason or "",
                )
            ],
        )
        return ServiceOutput(payload={"oferta": updated.to_payload(now), "message": success_message(message_key)})

    def counter_offer(self, db, *, principal: Principal, counter_input: CounterOfferInput) -> ServiceOutput:
        now = self.clock()
        stamp = to_db_timestamp(now)
        with db.transaction():
            offer, _process = self._lock_offer_and_process(db, counter_input.offer_id)
            self._require_party(offer, principal, Party.SELLER)
            next_status = can_transition("oferta", offer.status, "counter_offer", Party.SELLER.value)
            _require_positive(counter_input.amount)

            self._overwrite_terms(
                db,
                offer,
                snapshot_kind=NegotiationKind.OFFER,
                party=Party.SELLER,
                amount=counter_input.amount,
                message=counter_input.message,
                special_terms=counter_input.special_terms,
                valid_until=counter_input.valid_until,
                next_status=next_status,
                note="Contraproposta feita pelo vendedor",
                stamp=stamp,
            )
            updated = self.load_offer(db, offer.id)

        self._after_commit(
            "counter_offer_made",
            updated,
            [
                CounterOfferMade(
                    offer_id=updated.id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    amount=str(updated.amount),
                )
            ],
        )
        return ServiceOutput(payload={"oferta": updated.to_payload(now), "message": success_message("counter_offer_sent")})

    def respond_to_counter(self, db, *, principal: Principal, response_input: CounterResponseInput) -> ServiceOutput:
        action = str(response_input.action or "").strip().lower()
        if action not in RESPONSE_ACTIONS:
            raise ValidationError(code="action_invalid", message_key="action_invalid")

        now = self.clock()
        stamp = to_db_timestamp(now)
        with db.transaction():
            offer, process = self._lock_offer_and_process(db, response_input.offer_id)
            self._require_party(offer, principal, Party.BUYER)
            next_status = can_transition("oferta", offer.status, f"respond_{action}", Party.BUYER.value)

            if action == "accept":
                self.offers.update_status(db, offer.id, next_status, stamp)
                self.offers.append_status_history(
                    db, offer.id, next_status, "Contraproposta aceita pelo comprador", stamp
                )
                self.offers.append_negotiation(
                    db,
                    offer.id,
                    kind=NegotiationKind.ACCEPTANCE.value,
                    recorded_by=Party.BUYER.value,
                    amount=to_db_amount(offer.amount),
                    message=response_input.message or "Contraproposta aceita",
                    special_terms=None,
                    at=stamp,
                )
                message_key = "counter_offer_accepted"
            elif action == "refuse":
                self.offers.update_status(db, offer.id, next_status, stamp)
                self.offers.append_status_history(
                    db,
                    offer.id,
                    next_status,
                    response_input.message or "Contraproposta recusada pelo comprador",
                    stamp,
                )
                self.offers.append_negotiation(
                    db,
                    offer.id,
                    kind=NegotiationKind.REFUSAL.value,
                    recorded_by=Party.BUYER.value,
                    amount=None,
                    message=response_input.message or "Contraproposta recusada",
                    special_terms=None,
                    at=stamp,
                )
                self._refresh_has_offers(db, process, stamp)
                message_key = "counter_offer_refused"
            else:
                _require_positive(response_input.amount)
                self._overwrite_terms(
                    db,
                    offer,
                    snapshot_kind=NegotiationKind.COUNTER_OFFER,
                    party=Party.BUYER,
                    amount=response_input.amount,
                    message=response_input.message,
                    special_terms=response_input.special_terms,
                    valid_until=response_input.valid_until,
                    next_status=next_status,
                    note="Nova contraproposta feita pelo comprador",
                    stamp=stamp,
                )
                message_key = "counter_offer_countered"
            updated = self.load_offer(db, offer.id)

        self._after_commit(
            f"counter_offer_{action}",
            updated,
            [
                CounterOfferAnswered(
                    offer_id=updated.id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    action=action,
                    status=updated.status.value,
                )
            ],
        )
        return ServiceOutput(payload={"oferta": updated.to_payload(now), "message": success_message(message_key)})

    # Helpers

    def _lock_offer_and_process(self, db, offer_id: int) -> tuple[Offer, Process]:
        # Process first, then offer: every writer on a process takes locks in the same order.
        row = self.offers.get(db, offer_id)
        if row is None:
            raise NotFoundError(code="offer_not_found", message_key="offer_not_found")
        process_row = self.processes.lock(db, int(row["process_id"]))
        if process_row is None:
            raise NotFoundError(code="process_not_found", message_key="process_not_found")
        row = self.offers.lock(db, offer_id)
        return Offer.from_row(row), Process.from_row(process_row)

    @staticmethod
    def _require_party(offer: Offer, principal: Principal, party: Party) -> None:
        if offer.party_of(principal.user_id) != party:
            raise AppPermissionError()

    def _overwrite_terms(
        self,
        db,
        offer: Offer,
        *,
        snapshot_kind: NegotiationKind,
        party: Party,
        amount: Decimal,
        message: str | None,
        special_terms: str | None,
        valid_until: datetime | None,
        next_status: str,
        note: str,
        stamp: str,
    ) -> None:
        previous_at = offer.updated_at or offer.created_at
        self.offers.append_negotiation(
            db,
            offer.id,
            kind=snapshot_kind.value,
            recorded_by=party.value,
            amount=to_db_amount(offer.amount),
            message=offer.message,
            special_terms=offer.special_terms,
            at=to_db_timestamp(previous_at) or stamp,
        )
        new_message = message or offer.message
        new_terms = special_terms or offer.special_terms
        self.offers.update_terms(
            db,
            offer.id,
            amount=to_db_amount(amount),
            message=new_message,
            special_terms=new_terms,
            valid_until=to_db_timestamp(valid_until or offer.valid_until),
            status=next_status,
            at=stamp,
        )
        self.offers.append_status_history(db, offer.id, next_status, note, stamp)
        self.offers.append_negotiation(
            db,
            offer.id,
            kind=NegotiationKind.COUNTER_OFFER.value,
            recorded_by=party.value,
            amount=to_db_amount(amount),
            message=new_message,
            special_terms=new_terms,
            at=stamp,
        )

    def _refresh_has_offers(self, db, process: Process, stamp: str) -> None:
        has_offers = self.offers.count_by_process_status(db, process.id, _ACTIVE_VALUES) > 0
        if has_offers != process.has_offers:
            self.processes.set_has_offers(db, process.id, has_offers, stamp)

    def _after_commit(self, log_event: str, offer: Offer, events: List[DomainEvent], **extra) -> None:
        observe_transition("oferta", offer.status.value)
        LOGGER.info(
            log_event,
            extra={
                "offer_id": offer.id,
                "process_id": offer.process_id,
                "status": offer.status.value,
                **extra,
            },
        )
        self.event_bus.publish_all(events)


def _require_positive(amount: Decimal | None) -> None:
    if amount is None or amount <= 0:
        raise ValidationError(code="amount_invalid", message_key="amount_invalid")
