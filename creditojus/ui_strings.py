from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "CreditoJus",
    "process": "Processo",
    "offer": "Oferta",
    "transaction": "Transacao",
    "seller": "Vendedor",
    "buyer": "Comprador",
}


PARTY_NAMES: Dict[str, str] = {
    "seller": "vendedor",
    "buyer": "comprador",
    "system": "sistema",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "processo": [
        {"key": "pending", "label": "Pendente", "description": "Processo cadastrado aguardando analise."},
        {"key": "under_review", "label": "Em analise", "description": "Processo em validacao pela equipe."},
        {"key": "active", "label": "Ativo", "description": "Processo disponivel no marketplace para ofertas."},
        {"key": "rejected", "label": "Rejeitado", "description": "Processo recusado na validacao."},
        {"key": "offer_accepted", "label": "Oferta aceita", "description": "Vendedor aceitou uma oferta."},
        {"key": "in_transaction", "label": "Em transacao", "description": "Cessao de credito em andamento."},
        {"key": "sold", "label": "Vendido", "description": "Credito cedido com pagamento confirmado."},
        {"key": "archived", "label": "Arquivado", "description": "Processo retirado do marketplace."},
    ],
    "oferta": [
        {"key": "pending", "label": "Pendente", "description": "Oferta aguardando resposta do vendedor."},
        {"key": "negotiating", "label": "Em negociacao", "description": "Contrapropostas em andamento."},
        {"key": "accepted", "label": "Aceita", "description": "Vendedor aceitou a oferta."},
        {"key": "rejected", "label": "Rejeitada", "description": "Oferta recusada pelo vendedor."},
        {"key": "cancelled", "label": "Cancelada", "description": "Oferta encerrada sem continuidade."},
        {"key": "in_transaction", "label": "Em transacao", "description": "Oferta convertida em transacao."},
        {"key": "completed", "label": "Concluida", "description": "Transacao da oferta concluida."},
    ],
    "transacao": [
        {"key": "started", "label": "Iniciada", "description": "Transacao criada a partir da oferta aceita."},
        {"key": "contract_sent", "label": "Contrato enviado", "description": "Uma das partes enviou o contrato."},
        {"key": "contract_signed", "label": "Contrato assinado", "description": "Ambas as partes enviaram o contrato."},
        {"key": "awaiting_payment", "label": "Aguardando pagamento", "description": "Contrato formalizado, pagamento pendente."},
        {"key": "payment_registered", "label": "Pagamento registrado", "description": "Comprador registrou o comprovante."},
        {"key": "completed", "label": "Concluida", "description": "Vendedor confirmou o recebimento."},
        {"key": "cancelled", "label": "Cancelada", "description": "Transacao encerrada sem continuidade."},
        {"key": "refunded", "label": "Reembolsada", "description": "Pagamento devolvido ao comprador."},
    ],
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "offer_created": "Oferta criada com sucesso.",
        "offer_accepted": "Oferta aceita com sucesso. O proximo passo e a formalizacao do contrato.",
        "offer_rejected": "Oferta rejeitada com sucesso.",
        "offer_cancelled": "Oferta cancelada com sucesso.",
        "counter_offer_sent": "Contraproposta enviada com sucesso.",
        "counter_offer_accepted": "Contraproposta aceita com sucesso. Aguardando confirmacao final do vendedor.",
        "counter_offer_refused": "Contraproposta recusada e oferta cancelada.",
        "counter_offer_countered": "Nova contraproposta enviada com sucesso.",
        "transaction_started": "Transacao iniciada com sucesso.",
        "documents_submitted": "Documentos enviados com sucesso.",
        "payment_registered": "Pagamento registrado com sucesso. Aguardando confirmacao do vendedor.",
        "receipt_confirmed": "Recebimento confirmado com sucesso. Transacao concluida!",
        "transaction_cancelled": "Transacao cancelada com sucesso.",
    },
    "error": {
        "action_invalid": "Acao invalida. Escolha entre aceitar, recusar ou contrapropor.",
        "amount_invalid": "O valor deve ser maior que zero.",
        "auth_required": "Autenticacao necessaria.",
        "auth_invalid_token": "Token invalido ou expirado.",
        "buyer_only": "Apenas compradores podem fazer ofertas.",
        "documents_required": "Nenhum documento enviado.",
        "documents_limit": "Envie no maximo {limit} documentos por vez.",
        "document_too_large": "Cada documento deve ter no maximo {limit} MB.",
        "offer_already_active": "Voce ja tem uma oferta ativa para este processo.",
        "offer_id_required": "Informe a oferta para iniciar a transacao.",
        "offer_not_accepted": "Apenas ofertas aceitas podem iniciar uma transacao (status atual: '{status}').",
        "offer_not_found": "Oferta nao encontrada.",
        "offer_status_invalid": "Nao e possivel {action} uma oferta com status '{status}'.",
        "payment_proof_required": "Comprovante de pagamento e obrigatorio.",
        "permission_denied": "Voce nao possui permissao para executar esta acao.",
        "process_id_required": "Informe o processo da oferta.",
        "process_not_available": "Este processo nao esta disponivel para ofertas.",
        "process_status_invalid": "Operacao '{action}' indisponivel para processo com status '{status}'.",
        "process_not_found": "Processo nao encontrado.",
        "reason_required": "Motivo do cancelamento e obrigatorio.",
        "status_filter_invalid": "Status informado e invalido para esta consulta.",
        "transaction_already_exists": "Ja existe uma transacao iniciada para esta oferta.",
        "transaction_not_found": "Transacao nao encontrada.",
        "transaction_status_invalid": "Nao e possivel {action} uma transacao com status '{status}'.",
        "unexpected_error": "Nao foi possivel concluir a operacao. Tente novamente em instantes.",
        "valid_until_invalid": "Data de validade invalida.",
    },
}


ACTION_VERBS: Dict[str, str] = {
    "accept": "aceitar",
    "reject": "rejeitar",
    "cancel": "cancelar",
    "counter_offer": "fazer contraproposta para",
    "respond": "responder a",
    "start": "iniciar transacao para",
    "submit_contract": "enviar documentos para",
    "register_payment": "registrar pagamento para",
    "confirm_receipt": "confirmar recebimento para",
    "accept_offer": "aceitar oferta",
    "cancel_transaction": "cancelar transacao",
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, status: str | None) -> str:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == status:
            return item["label"]
    return str(status or "")


def party_name(party: str | None) -> str:
    key = str(getattr(party, "value", party) or "")
    return PARTY_NAMES.get(key, key)


def action_verb(action: str) -> str:
    return ACTION_VERBS.get(action, action)


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
