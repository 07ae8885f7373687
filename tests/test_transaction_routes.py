import io
import os
import unittest

from creditojus import create_app
from creditojus.config import Config
from creditojus.core.event_bus import reset_event_bus_for_tests
from creditojus.db import close_db, get_db
from creditojus.ui_strings import success_message
from tests.helpers.factories import ADMIN, BUYER, SELLER, STRANGER, auth_headers, seed_process
from tests.helpers.temp_db import TempDbSandbox


JWT_SECRET = "test-secret"


class TransactionRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="transaction_routes")
        self.app = create_app(
            self._temp_db.make_config(Config, TESTING=True, AUTH_ENABLED=True, JWT_SECRET=JWT_SECRET)
        )
        self.client = self.app.test_client()
        with self.app.app_context():
            self.process_id = seed_process(get_db())

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        reset_event_bus_for_tests()
        self._temp_db.cleanup()

    def _headers(self, principal) -> dict:
        return auth_headers(principal, JWT_SECRET)

    def _accepted_offer(self) -> int:
        created = self.client.post(
            "/ofertas",
            json={"processoId": self.process_id, "valor": "100000.00"},
            headers=self._headers(BUYER),
        )
        offer_id = created.get_json()["oferta"]["id"]
        self.client.post(f"/ofertas/{offer_id}/aceitar", headers=self._headers(SELLER))
        return offer_id

    def _start(self) -> int:
        offer_id = self._accepted_offer()
        response = self.client.post("/transacoes", json={"ofertaId": offer_id}, headers=self._headers(BUYER))
        self.assertEqual(response.status_code, 201, response.get_data(as_text=True))
        return response.get_json()["transacao"]["id"]

    def _upload(self, transaction_id: int, principal, *names: str):
        files = [(io.BytesIO(b"%PDF-1.4 contrato"), name) for name in names]
        return self.client.post(
            f"/transacoes/{transaction_id}/contrato",
            data={"documentos": files},
            content_type="multipart/form-data",
            headers=self._headers(principal),
        )

    def test_start_and_duplicate(self) -> None:
        offer_id = self._accepted_offer()

        started = self.client.post("/transacoes", json={"ofertaId": offer_id}, headers=self._headers(SELLER))
        self.assertEqual(started.status_code, 201)
        payload = started.get_json()
        self.assertEqual(payload["message"], success_message("transaction_started"))
        self.assertEqual(payload["transacao"]["commission"], 5000.0)
        self.assertEqual(payload["transacao"]["net_amount"], 95000.0)

        duplicate = self.client.post("/transacoes", json={"ofertaId": offer_id}, headers=self._headers(BUYER))
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.get_json()["error"], "transaction_already_exists")

        missing = self.client.post("/transacoes", json={}, headers=self._headers(BUYER))
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.get_json()["error"], "offer_id_required")

    def test_contract_upload_through_completion(self) -> None:
        transaction_id = self._start()

        empty = self.client.post(
            f"/transacoes/{transaction_id}/contrato",
            data={},
            content_type="multipart/form-data",
            headers=self._headers(SELLER),
        )
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.get_json()["error"], "documents_required")

        sent = self._upload(transaction_id, SELLER, "contrato.pdf")
        self.assertEqual(sent.status_code, 200)
        transaction = sent.get_json()["transacao"]
        self.assertEqual(transaction["status"], "contract_sent")
        document = transaction["documents"][0]
        self.assertEqual(document["name"], "contrato.pdf")
        self.assertTrue(document["path"].endswith(".pdf"))
        self.assertTrue(os.path.exists(document["path"]))

        signed = self._upload(transaction_id, BUYER, "contrato-assinado.pdf")
        self.assertEqual(signed.get_json()["transacao"]["status"], "contract_signed")

        no_proof = self.client.post(
            f"/transacoes/{transaction_id}/pagamento", json={}, headers=self._headers(BUYER)
        )
        self.assertEqual(no_proof.status_code, 400)
        self.assertEqual(no_proof.get_json()["error"], "payment_proof_required")

        paid = self.client.post(
            f"/transacoes/{transaction_id}/pagamento",
            json={"comprovante": "TED-0001", "observacao": "Pago via TED"},
            headers=self._headers(BUYER),
        )
        self.assertEqual(paid.status_code, 200)
        self.assertEqual(paid.get_json()["transacao"]["payment_note"], "Pago via TED")

        seller_only = self.client.post(f"/transacoes/{transaction_id}/confirmar", headers=self._headers(BUYER))
        self.assertEqual(seller_only.status_code, 403)

        done = self.client.post(f"/transacoes/{transaction_id}/confirmar", headers=self._headers(SELLER))
        self.assertEqual(done.status_code, 200)
        self.assertEqual(done.get_json()["transacao"]["status"], "completed")
        self.assertEqual(done.get_json()["message"], success_message("receipt_confirmed"))

    def test_rejected_upload_leaves_no_files(self) -> None:
        transaction_id = self._start()

        response = self._upload(transaction_id, STRANGER, "intruso.pdf")

        self.assertEqual(response.status_code, 403)
        upload_root = os.path.join(self._temp_db.upload_dir, "transacoes")
        leftovers = os.listdir(upload_root) if os.path.isdir(upload_root) else []
        self.assertEqual(leftovers, [])

    def test_oversized_document_is_refused(self) -> None:
        transaction_id = self._start()
        self.app.config["MAX_FILE_SIZE"] = 32

        response = self.client.post(
            f"/transacoes/{transaction_id}/contrato",
            data={"documentos": [(io.BytesIO(b"%PDF-1.4"), "ok.pdf"), (io.BytesIO(b"x" * 64), "grande.pdf")]},
            content_type="multipart/form-data",
            headers=self._headers(SELLER),
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"], "document_too_large")
        upload_root = os.path.join(self._temp_db.upload_dir, "transacoes")
        self.assertEqual(os.listdir(upload_root), [])
        detail = self.client.get(f"/transacoes/{transaction_id}", headers=self._headers(SELLER))
        self.assertEqual(detail.get_json()["transacao"]["status"], "started")

    def test_ids_beyond_storage_range(self) -> None:
        huge = 10**25

        start = self.client.post("/transacoes", json={"ofertaId": huge}, headers=self._headers(BUYER))
        self.assertEqual(start.status_code, 400)
        self.assertEqual(start.get_json()["error"], "offer_id_required")

        detail = self.client.get(f"/transacoes/{huge}", headers=self._headers(BUYER))
        self.assertEqual(detail.status_code, 404)
        self.assertEqual(detail.get_json()["error"], "transaction_not_found")

        cancel = self.client.post(
            f"/transacoes/{huge}/cancelar", json={"motivo": "x"}, headers=self._headers(SELLER)
        )
        self.assertEqual(cancel.status_code, 404)

    def test_cancel_requires_reason_and_reopens_process(self) -> None:
        transaction_id = self._start()

        no_reason = self.client.post(f"/transacoes/{transaction_id}/cancelar", json={}, headers=self._headers(SELLER))
        self.assertEqual(no_reason.status_code, 400)
        self.assertEqual(no_reason.get_json()["error"], "reason_required")

        cancelled = self.client.post(
            f"/transacoes/{transaction_id}/cancelar", json={"motivo": "test"}, headers=self._headers(SELLER)
        )
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.get_json()["transacao"]["status"], "cancelled")
        self.assertEqual(cancelled.get_json()["transacao"]["cancelled_by"], "seller")

        reopened = self.client.post(
            "/ofertas", json={"processoId": self.process_id, "valor": 95000}, headers=self._headers(BUYER)
        )
        self.assertEqual(reopened.status_code, 201)

    def test_detail_and_listing_access(self) -> None:
        transaction_id = self._start()

        admin_view = self.client.get(f"/transacoes/{transaction_id}", headers=self._headers(ADMIN))
        self.assertEqual(admin_view.status_code, 200)

        outsider = self.client.get(f"/transacoes/{transaction_id}", headers=self._headers(STRANGER))
        self.assertEqual(outsider.status_code, 403)

        missing = self.client.get("/transacoes/9999", headers=self._headers(BUYER))
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "transaction_not_found")

        listing = self.client.get("/transacoes?status=started", headers=self._headers(BUYER))
        items = listing.get_json()["transacoes"]
        self.assertEqual([item["id"] for item in items], [transaction_id])
        self.assertFalse(items[0]["is_seller"])

        invalid = self.client.get("/transacoes?status=pago", headers=self._headers(BUYER))
        self.assertEqual(invalid.status_code, 400)


if __name__ == "__main__":
    unittest.main()
