from __future__ import annotations

from flask import Blueprint, jsonify, request

from creditojus.application.transaction_service import TransactionService
from creditojus.auth import current_principal
from creditojus.db import get_db
from creditojus.domain.contracts import ContractSubmissionInput, PaymentInput
from creditojus.errors import ValidationError
from creditojus.infrastructure.storage import LocalDocumentStorage, store_all
from creditojus.routes.common import MAX_RECORD_ID, config_value, guard_path_ids, json_body, optional_text


transaction_bp = Blueprint("transactions", __name__)
guard_path_ids(transaction_bp, transaction_id="transaction_not_found")

CONTRACT_FILES_FIELD = "documentos"


def _service() -> TransactionService:
    return TransactionService(
        commission_rate=config_value("COMMISSION_RATE", "0.05"),
        max_documents=int(config_value("MAX_CONTRACT_FILES", 5)),
    )


def _storage() -> LocalDocumentStorage:
    return LocalDocumentStorage(config_value("UPLOAD_DIR"), max_file_size=config_value("MAX_FILE_SIZE"))


def _respond(result):
    return jsonify(result.payload), result.status_code


def _offer_id(payload: dict) -> int | None:
    raw = payload.get("ofertaId")
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    if abs(value) > MAX_RECORD_ID:
        raise ValidationError(code="offer_id_required", message_key="offer_id_required")
    return value


@transaction_bp.route("/transacoes", methods=["POST"])
def start_transaction():
    principal = current_principal()
    payload = json_body()
    return _respond(_service().start(get_db(), principal=principal, offer_id=_offer_id(payload)))


@transaction_bp.route("/transacoes", methods=["GET"])
def list_transactions():
    principal = current_principal()
    return _respond(_service().list_for_user(get_db(), principal=principal, status=request.args.get("status")))


@transaction_bp.route("/transacoes/<int:transaction_id>", methods=["GET"])
def transaction_detail(transaction_id: int):
    return _respond(_service().get_detail(get_db(), principal=current_principal(), transaction_id=transaction_id))


@transaction_bp.route("/transacoes/<int:transaction_id>/contrato", methods=["POST"])
def submit_contract(transaction_id: int):
    principal = current_principal()
    storage = _storage()
    files = [file for file in request.files.getlist(CONTRACT_FILES_FIELD) if file and file.filename]
    documents = store_all(storage, files)
    submission = ContractSubmissionInput(transaction_id=transaction_id, documents=documents)
    return _respond(
        _service().submit_contract(get_db(), principal=principal, submission=submission, storage=storage)
    )


@transaction_bp.route("/transacoes/<int:transaction_id>/pagamento", methods=["POST"])
def register_payment(transaction_id: int):
    payload = json_body()
    payment_input = PaymentInput(
        transaction_id=transaction_id,
        proof=optional_text(payload, "comprovante"),
        note=optional_text(payload, "observacao"),
    )
    return _respond(_service().register_payment(get_db(), principal=current_principal(), payment_input=payment_input))


@transaction_bp.route("/transacoes/<int:transaction_id>/confirmar", methods=["POST"])
def confirm_receipt(transaction_id: int):
    payload = json_body()
    return _respond(
        _service().confirm_receipt(
            get_db(),
            principal=current_principal(),
            transaction_id=transaction_id,
            note=optional_text(payload, "observacao"),
        )
    )


@transaction_bp.route("/transacoes/<int:transaction_id>/cancelar", methods=["POST"])
def cancel_transaction(transaction_id: int):
    payload = json_body()
    return _respond(
        _service().cancel(
            get_db(),
            principal=current_principal(),
            transaction_id=transaction_id,
            reason=optional_text(payload, "motivo"),
        )
    )
