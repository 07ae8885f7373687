import unittest

from creditojus import create_app
from creditojus.config import Config
from creditojus.core.event_bus import reset_event_bus_for_tests
from creditojus.db import close_db, get_db
from creditojus.ui_strings import error_message, success_message
from tests.helpers.factories import BUYER, OTHER_BUYER, SELLER, STRANGER, auth_headers, seed_process
from tests.helpers.temp_db import TempDbSandbox


JWT_SECRET = "test-secret"


class OfferRoutesTest(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_db = TempDbSandbox(prefix="offer_routes")
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

    def _create(self, principal=BUYER, valor=1000):
        return self.client.post(
            "/ofertas",
            json={"processoId": self.process_id, "valor": valor, "mensagem": "Tenho interesse"},
            headers=self._headers(principal),
        )

    def test_create_offer_envelope(self) -> None:
        response = self._create()

        self.assertEqual(response.status_code, 201)
        payload = response.get_json()
        self.assertEqual(payload["message"], success_message("offer_created"))
        self.assertEqual(payload["oferta"]["status"], "pending")
        self.assertEqual(payload["oferta"]["status_label"], "Pendente")
        self.assertEqual(payload["oferta"]["message"], "Tenho interesse")
        self.assertTrue(response.headers.get("X-Request-Id"))

    def test_duplicate_offer_returns_conflict(self) -> None:
        first = self._create().get_json()["oferta"]["id"]

        response = self._create(valor=1500)

        self.assertEqual(response.status_code, 409)
        payload = response.get_json()
        self.assertEqual(payload["error"], "offer_already_active")
        self.assertEqual(payload["message"], error_message("offer_already_active"))
        self.assertEqual(payload["offer_id"], first)
        self.assertTrue(payload["request_id"])

    def test_validation_errors(self) -> None:
        missing_process = self.client.post("/ofertas", json={"valor": 10}, headers=self._headers(BUYER))
        self.assertEqual(missing_process.status_code, 400)
        self.assertEqual(missing_process.get_json()["error"], "process_id_required")

        bad_amount = self._create(valor=0)
        self.assertEqual(bad_amount.status_code, 400)
        self.assertEqual(bad_amount.get_json()["error"], "amount_invalid")

        bad_date = self.client.post(
            "/ofertas",
            json={"processoId": self.process_id, "valor": 10, "dataValidade": "amanha"},
            headers=self._headers(BUYER),
        )
        self.assertEqual(bad_date.status_code, 400)
        self.assertEqual(bad_date.get_json()["error"], "valid_until_invalid")

    def test_ids_beyond_storage_range(self) -> None:
        huge = 10**25

        detail = self.client.get(f"/ofertas/{huge}", headers=self._headers(BUYER))
        self.assertEqual(detail.status_code, 404)
        self.assertEqual(detail.get_json()["error"], "offer_not_found")

        accept = self.client.post(f"/ofertas/{huge}/aceitar", headers=self._headers(SELLER))
        self.assertEqual(accept.status_code, 404)

        create = self.client.post("/ofertas", json={"processoId": huge, "valor": 10}, headers=self._headers(BUYER))
        self.assertEqual(create.status_code, 400)
        self.assertEqual(create.get_json()["error"], "process_id_required")

        listing = self.client.get(f"/ofertas/enviadas?processoId={huge}", headers=self._headers(BUYER))
        self.assertEqual(listing.status_code, 400)

        anonymous = self.client.get(f"/ofertas/{huge}")
        self.assertEqual(anonymous.status_code, 401)

    def test_seller_cannot_create_offer(self) -> None:
        response = self._create(principal=SELLER)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.get_json()["error"], "buyer_only")

    def test_accept_flow_and_invalid_state(self) -> None:
        first = self._create().get_json()["oferta"]["id"]
        second = self._create(principal=OTHER_BUYER).get_json()["oferta"]["id"]

        forbidden = self.client.post(f"/ofertas/{first}/aceitar", headers=self._headers(BUYER))
        self.assertEqual(forbidden.status_code, 403)

        accepted = self.client.post(
            f"/ofertas/{first}/aceitar", json={"observacao": "Fechado"}, headers=self._headers(SELLER)
        )
        self.assertEqual(accepted.status_code, 200)
        self.assertEqual(accepted.get_json()["oferta"]["status"], "accepted")
        self.assertEqual(accepted.get_json()["oferta"]["status_history"][-1]["note"], "Fechado")

        sibling = self.client.get(f"/ofertas/{second}", headers=self._headers(OTHER_BUYER)).get_json()["oferta"]
        self.assertEqual(sibling["status"], "rejected")

        again = self.client.post(f"/ofertas/{second}/rejeitar", headers=self._headers(SELLER))
        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.get_json()["status"], "rejected")
        self.assertIn("'rejected'", again.get_json()["message"])

    def test_counter_offer_round_trip(self) -> None:
        offer_id = self._create().get_json()["oferta"]["id"]

        countered = self.client.post(
            f"/ofertas/{offer_id}/contraproposta",
            json={"valor": 1800, "mensagem": "Minimo aceitavel"},
            headers=self._headers(SELLER),
        )
        self.assertEqual(countered.status_code, 200)
        self.assertEqual(countered.get_json()["oferta"]["status"], "negotiating")

        bad_action = self.client.post(
            f"/ofertas/{offer_id}/responder-contraproposta",
            json={"acao": "talvez"},
            headers=self._headers(BUYER),
        )
        self.assertEqual(bad_action.status_code, 400)
        self.assertEqual(bad_action.get_json()["error"], "action_invalid")

        answered = self.client.post(
            f"/ofertas/{offer_id}/responder-contraproposta",
            json={"acao": "contrapropor", "valor": 1500},
            headers=self._headers(BUYER),
        )
        self.assertEqual(answered.status_code, 200)
        self.assertEqual(answered.get_json()["message"], success_message("counter_offer_countered"))
        self.assertEqual(answered.get_json()["oferta"]["amount"], 1500.0)

        seller_reply = self.client.post(
            f"/ofertas/{offer_id}/responder-contraproposta",
            json={"acao": "aceitar"},
            headers=self._headers(SELLER),
        )
        self.assertEqual(seller_reply.status_code, 403)

        accepted = self.client.post(
            f"/ofertas/{offer_id}/responder-contraproposta",
            json={"acao": "aceitar"},
            headers=self._headers(BUYER),
        )
        self.assertEqual(accepted.get_json()["oferta"]["status"], "pending")

    def test_lists_and_detail(self) -> None:
        offer_id = self._create().get_json()["oferta"]["id"]

        received = self.client.get("/ofertas/recebidas", headers=self._headers(SELLER))
        self.assertEqual(received.status_code, 200)
        self.assertEqual([item["id"] for item in received.get_json()["ofertas"]], [offer_id])

        filtered = self.client.get(
            f"/ofertas/enviadas?status=pending&processoId={self.process_id}", headers=self._headers(BUYER)
        )
        self.assertEqual(len(filtered.get_json()["ofertas"]), 1)

        invalid = self.client.get("/ofertas/enviadas?status=vendida", headers=self._headers(BUYER))
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.get_json()["error"], "status_filter_invalid")

        wrong_role = self.client.get("/ofertas/recebidas", headers=self._headers(BUYER))
        self.assertEqual(wrong_role.status_code, 403)

        outsider = self.client.get(f"/ofertas/{offer_id}", headers=self._headers(STRANGER))
        self.assertEqual(outsider.status_code, 403)

        missing = self.client.get("/ofertas/9999", headers=self._headers(SELLER))
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.get_json()["error"], "offer_not_found")

    def test_cancel_by_buyer(self) -> None:
        offer_id = self._create().get_json()["oferta"]["id"]

        response = self.client.post(
            f"/ofertas/{offer_id}/cancelar", json={"motivo": "Mudei de ideia"}, headers=self._headers(BUYER)
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["oferta"]["status"], "cancelled")
        self.assertEqual(response.get_json()["oferta"]["status_history"][-1]["note"], "Mudei de ideia")


if __name__ == "__main__":
    unittest.main()
