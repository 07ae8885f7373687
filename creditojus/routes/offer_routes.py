from __future__ import annotations

from flask import Blueprint, jsonify, request

from creditojus.application.offer_service import OfferService
from creditojus.auth import current_principal
from creditojus.db import get_db
from creditojus.domain.contracts import (
    CounterOfferInput,
    CounterResponseInput,
    OfferCreateInput,
    OfferListFilter,
)
from creditojus.policies import require_roles
from creditojus.routes.common import (
    config_value,
    guard_path_ids,
    json_body,
    optional_int_arg,
    optional_text,
    parse_amount,
    parse_int,
    parse_valid_until,
)


offer_bp = Blueprint("offers", __name__)
guard_path_ids(offer_bp, offer_id="offer_not_found")

RESPONSE_ACTION_ALIASES = {
    "aceitar": "accept",
    "recusar": "refuse",
    "contrapropor": "counter",
}


def _service() -> OfferService:
    return OfferService(validity_days=int(config_value("OFFER_VALIDITY_DAYS", 7)))


def _respond(result):
    return jsonify(result.payload), result.status_code


@offer_bp.route("/ofertas", methods=["POST"])
def create_offer():
    principal = current_principal()
    payload = json_body()
    create_input = OfferCreateInput(
        process_id=parse_int(payload.get("processoId"), code="process_id_required", message_key="process_id_required"),
        amount=parse_amount(payload.get("valor")),
        message=optional_text(payload, "mensagem"),
        special_terms=optional_text(payload, "condicoesEspeciais"),
        valid_until=parse_valid_until(payload.get("dataValidade")),
    )
    return _respond(_service().create(get_db(), principal=principal, create_input=create_input))


@offer_bp.route("/ofertas/recebidas", methods=["GET"])
def received_offers():
    principal = current_principal()
    require_roles(principal, "seller")
    filters = OfferListFilter(status=request.args.get("status"), process_id=optional_int_arg("processoId"))
    return _respond(_service().list_received(get_db(), principal=principal, filters=filters))


@offer_bp.route("/ofertas/enviadas", methods=["GET"])
def sent_offers():
    principal = current_principal()
    require_roles(principal, "buyer")
    filters = OfferListFilter(status=request.args.get("status"), process_id=optional_int_arg("processoId"))
    return _respond(_service().list_sent(get_db(), principal=principal, filters=filters))


@offer_bp.route("/ofertas/<int:offer_id>", methods=["GET"])
def offer_detail(offer_id: int):
    return _respond(_service().get_detail(get_db(), principal=current_principal(), offer_id=offer_id))


@offer_bp.route("/ofertas/<int:offer_id>/aceitar", methods=["POST"])
def accept_offer(offer_id: int):
    payload = json_body()
    return _respond(
        _service().accept(
            get_db(),
            principal=current_principal(),
            offer_id=offer_id,
            note=optional_text(payload, "observacao"),
        )
    )


@offer_bp.route("/ofertas/<int:offer_id>/rejeitar", methods=["POST"])
def reject_offer(offer_id: int):
    payload = json_body()
    return _respond(
        _service().reject(
            get_db(),
            principal=current_principal(),
            offer_id=offer_id,
            reason=optional_text(payload, "motivo"),
        )
    )


@offer_bp.route("/ofertas/<int:offer_id>/cancelar", methods=["POST"])
def cancel_offer(offer_id: int):
    payload = json_body()
    return _respond(
        _service().cancel(
            get_db(),
            principal=current_principal(),
            offer_id=offer_id,
            reason=optional_text(payload, "motivo"),
        )
    )


@offer_bp.route("/ofertas/<int:offer_id>/contraproposta", methods=["POST"])
def counter_offer(offer_id: int):
    payload = json_body()
    counter_input = CounterOfferInput(
        offer_id=offer_id,
        amount=parse_amount(payload.get("valor")),
        message=optional_text(payload, "mensagem"),
        special_terms=optional_text(payload, "condicoesEspeciais"),
        valid_until=parse_valid_until(payload.get("dataValidade")),
    )
    return _respond(_service().counter_offer(get_db(), principal=current_principal(), counter_input=counter_input))


@offer_bp.route("/ofertas/<int:offer_id>/responder-contraproposta", methods=["POST"])
def respond_counter_offer(offer_id: int):
    payload = json_body()
    raw_action = str(payload.get("acao") or "").strip().lower()
    response_input = CounterResponseInput(
        offer_id=offer_id,
        action=RESPONSE_ACTION_ALIASES.get(raw_action, raw_action),
        amount=parse_amount(payload.get("valor")),
        message=optional_text(payload, "mensagem"),
        special_terms=optional_text(payload, "condicoesEspeciais"),
        valid_until=parse_valid_until(payload.get("dataValidade")),
    )
    return _respond(
        _service().respond_to_counter(get_db(), principal=current_principal(), response_input=response_input)
    )
