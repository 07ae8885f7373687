from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List

from creditojus.core.event_bus import (
    ContractSubmitted,
    DomainEvent,
    EventBus,
    PaymentRegistered,
    TransactionCancelled,
    TransactionCompleted,
    TransactionStarted,
    get_event_bus,
)
from creditojus.domain.contracts import ContractSubmissionInput, PaymentInput, Principal, ServiceOutput
from creditojus.domain.models import Offer, Process, Transaction
from creditojus.domain.values import commission_for, to_db_amount, to_db_timestamp, utc_now
from creditojus.errors import ConflictError, NotFoundError, ValidationError
from creditojus.errors import PermissionError as AppPermissionError
from creditojus.infrastructure.repositories import OfferRepository, ProcessRepository, TransactionRepository
from creditojus.infrastructure.storage import DocumentStorage, discard_all
from creditojus.negotiation.flow_policy import can_transition
from creditojus.negotiation.statuses import Party, TransactionStatus, parse_status
from creditojus.observability import observe_transition
from creditojus.ui_strings import party_name, success_message


LOGGER = logging.getLogger("creditojus.transactions")


class TransactionService:
    """Transaction lifecycle started from an accepted offer.

    start, confirm_receipt and cancel move the transaction, its offer and the
    process together inside one unit of work.
    """

    def __init__(
        self,
        *,
        process_repository: ProcessRepository | None = None,
        offer_repository: OfferRepository | None = None,
        transaction_repository: TransactionRepository | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
        commission_rate: Decimal | str = "0.05",
        max_documents: int = 5,
    ) -> None:
        self.processes = process_repository or ProcessRepository()
        self.offers = offer_repository or OfferRepository()
        self.transactions = transaction_repository or TransactionRepository()
        self.event_bus = event_bus or get_event_bus()
        self.clock = clock or utc_now
        self.commission_rate = Decimal(str(commission_rate))
        self.max_documents = int(max_documents)

    # Reads

    def load_transaction(self, db, transaction_id: int) -> Transaction | None:
        row = self.transactions.get(db, transaction_id)
        if row is None:
            return None
        return Transaction.from_row(
            row,
            self.transactions.list_status_history(db, transaction_id),
            self.transactions.list_documents(db, transaction_id),
        )

    def get_detail(self, db, *, principal: Principal, transaction_id: int) -> ServiceOutput:
        transaction = self.load_transaction(db, transaction_id)
        if transaction is None:
            raise NotFoundError(code="transaction_not_found", message_key="transaction_not_found")
        if transaction.party_of(principal.user_id) is None and not principal.is_admin:
            raise AppPermissionError()
        return ServiceOutput(payload={"transacao": transaction.to_payload(viewer_id=principal.user_id)})

    def list_for_user(self, db, *, principal: Principal, status: str | None = None) -> ServiceOutput:
        status_value = None
        if status:
            parsed = parse_status(TransactionStatus, status)
            if parsed is None:
                raise ValidationError(code="status_filter_invalid", message_key="status_filter_invalid")
            status_value = parsed.value
        rows = self.transactions.list_for_user(db, principal.user_id, status=status_value)
        items = [
            Transaction.from_row(row, (), self.transactions.list_documents(db, row["id"])).to_payload(
                viewer_id=principal.user_id
            )
            for row in rows
        ]
        return ServiceOutput(payload={"transacoes": items})

    # Writes

    def start(self, db, *, principal: Principal, offer_id: int | None) -> ServiceOutput:
        if offer_id is None:
            raise ValidationError(code="offer_id_required", message_key="offer_id_required")

        stamp = to_db_timestamp(self.clock())
        with db.transaction():
            offer_row = self.offers.get(db, offer_id)
            if offer_row is None:
                raise NotFoundError(code="offer_not_found", message_key="offer_not_found")
            process = self._lock_process(db, int(offer_row["process_id"]))
            offer = Offer.from_row(self.offers.lock(db, offer_id))
            party = offer.party_of(principal.user_id)
            if party is None:
                raise AppPermissionError()

            existing = self.transactions.get_by_offer(db, offer.id)
            if existing is not None:
                raise ConflictError(
                    code="transaction_already_exists",
                    message_key="transaction_already_exists",
                    payload={"transaction_id": int(existing["id"])},
                )
            offer_next = can_transition(
                "oferta", offer.status, "start", party.value, message_key="offer_not_accepted"
            )
            process_next = can_transition("processo", process.status, "start", party.value)

            commission, net_amount = commission_for(offer.amount, self.commission_rate)
            transaction_id = self.transactions.create(
                db,
                offer_id=offer.id,
                process_id=offer.process_id,
                seller_id=offer.seller_id,
                buyer_id=offer.buyer_id,
                amount=to_db_amount(offer.amount),
                commission=to_db_amount(commission),
                net_amount=to_db_amount(net_amount),
                status=TransactionStatus.STARTED.value,
                created_at=stamp,
            )
            self.transactions.append_status_history(
                db, transaction_id, TransactionStatus.STARTED.value, "Transacao iniciada", stamp
            )

            self.offers.update_status(db, offer.id, offer_next, stamp)
            self.offers.append_status_history(db, offer.id, offer_next, "Oferta entrou em fase de transacao", stamp)

            self.processes.update_status(db, process.id, process_next, stamp)
            self.processes.append_status_history(db, process.id, process_next, "Processo em fase de transacao", stamp)
            transaction = self.load_transaction(db, transaction_id)

        self._after_commit(
            "transaction_started",
            transaction,
            [
                TransactionStarted(
                    transaction_id=transaction.id,
                    offer_id=transaction.offer_id,
                    process_id=transaction.process_id,
                    seller_id=transaction.seller_id,
                    buyer_id=transaction.buyer_id,
                    actor_id=principal.user_id,
                    amount=str(transaction.amount),
                )
            ],
            commission=str(transaction.commission),
        )
        return ServiceOutput(
            payload={
                "transacao": transaction.to_payload(viewer_id=principal.user_id),
                "message": success_message("transaction_started"),
            },
            status_code=201,
        )

    def submit_contract(
        self,
        db,
        *,
        principal: Principal,
        submission: ContractSubmissionInput,
        storage: DocumentStorage,
    ) -> ServiceOutput:
        """Attach already stored documents; they are deleted again if anything fails."""
        try:
            return self._submit_contract(db, principal=principal, submission=submission)
        except Exception:
            discard_all(storage, submission.documents)
            raise

    def _submit_contract(self, db, *, principal: Principal, submission: ContractSubmissionInput) -> ServiceOutput:
        if not submission.documents:
            raise ValidationError(code="documents_required", message_key="documents_required")
        if len(submission.documents) > self.max_documents:
            raise ValidationError(
                code="documents_limit",
                message_key="documents_limit",
                params={"limit": self.max_documents},
            )

        stamp = to_db_timestamp(self.clock())
        with db.transaction():
            transaction = self._lock_transaction(db, submission.transaction_id)
            party = self._require_party(transaction, principal)
            next_status = can_transition("transacao", transaction.status, "submit_contract", party.value)

            for document in submission.documents:
                self.transactions.add_document(
                    db,
                    transaction.id,
                    name=document.name,
                    mime_type=document.mime_type,
                    path=document.path,
                    size=document.size,
                    submitted_by=party.value,
                    at=stamp,
                )

            if transaction.status == TransactionStatus.STARTED:
                self.transactions.update_status(db, transaction.id, next_status, stamp)
                self.transactions.append_status_history(
                    db, transaction.id, next_status, f"Contrato enviado pelo {party_name(party)}", stamp
                )
            elif transaction.status == TransactionStatus.CONTRACT_SENT and self._both_parties_submitted(
                db, transaction.id
            ):
                self.transactions.update_status(db, transaction.id, next_status, stamp)
                self.transactions.append_status_history(
                    db, transaction.id, next_status, "Contrato assinado por ambas as partes", stamp
                )
            updated = self.load_transaction(db, transaction.id)

        self._after_commit(
            "contract_submitted",
            updated,
            [
                ContractSubmitted(
                    transaction_id=updated.id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    submitted_by=party.value,
                    documents=len(submission.documents),
                    status=updated.status.value,
                )
            ],
            documents=len(submission.documents),
        )
        return ServiceOutput(
            payload={
                "transacao": updated.to_payload(viewer_id=principal.user_id),
                "message": success_message("documents_submitted"),
            }
        )

    def register_payment(self, db, *, principal: Principal, payment_input: PaymentInput) -> ServiceOutput:
        proof = str(payment_input.proof or "").strip()
        if not proof:
            raise ValidationError(code="payment_proof_required", message_key="payment_proof_required")

        stamp = to_db_timestamp(self.clock())
        with db.transaction():
            transaction = self._lock_transaction(db, payment_input.transaction_id)
            party = self._require_party(transaction, principal, Party.BUYER)
            next_status = can_transition("transacao", transaction.status, "register_payment", party.value)
            self.transactions.register_payment(
                db, transaction.id, proof=proof, note=payment_input.note, status=next_status, at=stamp
            )
            self.transactions.append_status_history(
                db, transaction.id, next_status, "Pagamento registrado pelo comprador", stamp
            )
            updated = self.load_transaction(db, transaction.id)

        self._after_commit(
            "payment_registered",
            updated,
            [
                PaymentRegistered(
                    transaction_id=updated.id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                )
            ],
        )
        return ServiceOutput(
            payload={
                "transacao": updated.to_payload(viewer_id=principal.user_id),
                "message": success_message("payment_registered"),
            }
        )

    def confirm_receipt(
        self, db, *, principal: Principal, transaction_id: int, note: str | None = None
    ) -> ServiceOutput:
        stamp = to_db_timestamp(self.clock())
        with db.transaction():
            transaction, offer, process = self._lock_cascade(db, transaction_id)
            party = self._require_party(transaction, principal, Party.SELLER)
            next_status = can_transition("transacao", transaction.status, "confirm_receipt", party.value)
            offer_next = can_transition("oferta", offer.status, "confirm_receipt", party.value)
            process_next = can_transition("processo", process.status, "confirm_receipt", party.value)

            self.transactions.complete(db, transaction.id, status=next_status, at=stamp)
            self.transactions.append_status_history(
                db, transaction.id, next_status, note or "Recebimento confirmado pelo vendedor", stamp
            )
            self.offers.update_status(db, offer.id, offer_next, stamp)
            self.offers.append_status_history(db, offer.id, offer_next, "Transacao concluida com sucesso", stamp)
            self.processes.update_status(db, process.id, process_next, stamp)
            self.processes.append_status_history(db, process.id, process_next, "Processo vendido com sucesso", stamp)
            updated = self.load_transaction(db, transaction.id)

        self._after_commit(
            "transaction_completed",
            updated,
            [
                TransactionCompleted(
                    transaction_id=updated.id,
                    offer_id=updated.offer_id,
                    process_id=updated.process_id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                )
            ],
        )
        return ServiceOutput(
            payload={
                "transacao": updated.to_payload(viewer_id=principal.user_id),
                "message": success_message("receipt_confirmed"),
            }
        )

    def cancel(self, db, *, principal: Principal, transaction_id: int, reason: str | None) -> ServiceOutput:
        reason = str(reason or "").strip()
        if not reason:
            raise ValidationError(code="reason_required", message_key="reason_required")

        stamp = to_db_timestamp(self.clock())
        with db.transaction():
            transaction, offer, process = self._lock_cascade(db, transaction_id)
            party = self._require_party(transaction, principal)
            next_status = can_transition("transacao", transaction.status, "cancel", party.value)
            offer_next = can_transition("oferta", offer.status, "cancel_transaction", party.value)
            process_next = can_transition("processo", process.status, "cancel_transaction", party.value)
            note = f"Transacao cancelada pelo {party_name(party)}: {reason}"

            self.transactions.cancel(
                db, transaction.id, status=next_status, reason=reason, cancelled_by=party.value, at=stamp
            )
            self.transactions.append_status_history(db, transaction.id, next_status, note, stamp)
            self.offers.update_status(db, offer.id, offer_next, stamp)
            self.offers.append_status_history(db, offer.id, offer_next, note, stamp)
            self.processes.update_status(db, process.id, process_next, stamp)
            self.processes.set_accepted_offer(db, process.id, None, stamp)
            self.processes.append_status_history(
                db, process.id, process_next, "Processo reativado apos cancelamento de transacao", stamp
            )
            updated = self.load_transaction(db, transaction.id)

        self._after_commit(
            "transaction_cancelled",
            updated,
            [
                TransactionCancelled(
                    transaction_id=updated.id,
                    offer_id=updated.offer_id,
                    process_id=updated.process_id,
                    seller_id=updated.seller_id,
                    buyer_id=updated.buyer_id,
                    actor_id=principal.user_id,
                    cancelled_by=party.value,
                    reason=reason,
                )
            ],
            cancelled_by=party.value,
        )
        return ServiceOutput(
            payload={
                "transacao": updated.to_payload(viewer_id=principal.user_id),
                "message": success_message("transaction_cancelled"),
            }
        )

    # Helpers

    def _lock_process(self, db, process_id: int) -> Process:
        row = self.processes.lock(db, process_id)
        if row is None:
            raise NotFoundError(code="process_not_found", message_key="process_not_found")
        return Process.from_row(row)

    def _lock_transaction(self, db, transaction_id: int) -> Transaction:
        row = self.transactions.get(db, transaction_id)
        if row is None:
            raise NotFoundError(code="transaction_not_found", message_key="transaction_not_found")
        self._lock_process(db, int(row["process_id"]))
        return Transaction.from_row(self.transactions.lock(db, transaction_id))

    def _lock_cascade(self, db, transaction_id: int) -> tuple[Transaction, Offer, Process]:
        # Lock order matches the offer engine: process, then offer, then transaction.
        row = self.transactions.get(db, transaction_id)
        if row is None:
            raise NotFoundError(code="transaction_not_found", message_key="transaction_not_found")
        process = self._lock_process(db, int(row["process_id"]))
        offer_row = self.offers.lock(db, int(row["offer_id"]))
        if offer_row is None:
            raise NotFoundError(code="offer_not_found", message_key="offer_not_found")
        transaction = Transaction.from_row(self.transactions.lock(db, transaction_id))
        return transaction, Offer.from_row(offer_row), process

    @staticmethod
    def _require_party(transaction: Transaction, principal: Principal, required: Party | None = None) -> Party:
        party = transaction.party_of(principal.user_id)
        if party is None or (required is not None and party != required):
            raise AppPermissionError()
        return party

    def _both_parties_submitted(self, db, transaction_id: int) -> bool:
        submitters = {row["submitted_by"] for row in self.transactions.list_documents(db, transaction_id)}
        return {Party.SELLER.value, Party.BUYER.value} <= submitters

    def _after_commit(self, log_event: str, transaction: Transaction, events: List[DomainEvent], **extra) -> None:
        observe_transition("transacao", transaction.status.value)
        LOGGER.info(
            log_event,
            extra={
                "transaction_id": transaction.id,
                "offer_id": transaction.offer_id,
                "process_id": transaction.process_id,
                "status": transaction.status.value,
                **extra,
            },
        )
        self.event_bus.publish_all(events)
