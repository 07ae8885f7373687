import unittest
from unittest.mock import patch

from creditojus import create_app
from creditojus.application.offer_service import OfferService
from creditojus.config import Config
from creditojus.core.event_bus import reset_event_bus_for_tests
from creditojus.db import close_db
from creditojus.observability import metrics_snapshot, reset_metrics_for_tests
from creditojus.ui_strings import FRIENDLY_TERMS, error_message
from tests.helpers.factories import BUYER, auth_headers
from tests.helpers.temp_db import TempDbSandbox


JWT_SECRET = "test-secret"


class _AppTestCase(unittest.TestCase):
    overrides: dict = {}

    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="error_handling")
        attrs = {"TESTING": False, "PROPAGATE_EXCEPTIONS": False, "DB_AUTO_INIT": True, "JWT_SECRET": JWT_SECRET}
        attrs.update(self.overrides)
        self.app = create_app(self._temp_db.make_config(Config, **attrs))
        self.client = self.app.test_client()

    def tearDown(self) -> None:
        with self.app.app_context():
            close_db()
        reset_event_bus_for_tests()
        reset_metrics_for_tests()
        self._temp_db.cleanup()


class AuthenticationErrorTest(_AppTestCase):
    overrides = {"AUTH_ENABLED": True}

    def test_missing_token_returns_auth_required(self) -> None:
        response = self.client.get("/ofertas/enviadas")

        self.assertEqual(response.status_code, 401)
        payload = response.get_json()
        self.assertEqual(payload["error"], "auth_required")
        self.assertEqual(payload["message"], error_message("auth_required"))
        self.assertTrue(payload["request_id"].strip())
        self.assertEqual(response.headers["X-Request-Id"], payload["request_id"])

    def test_bad_token_is_rejected(self) -> None:
        for header in ("Bearer nao-e-um-jwt", "Token abc", "Bearer"):
            with self.subTest(header=header):
                response = self.client.get("/ofertas/enviadas", headers={"Authorization": header})
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.get_json()["error"], "auth_invalid_token")

    def test_token_signed_with_other_secret_is_rejected(self) -> None:
        response = self.client.get("/ofertas/enviadas", headers=auth_headers(BUYER, "outro-segredo"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "auth_invalid_token")

    def test_health_is_public_and_echoes_request_id(self) -> None:
        response = self.client.get("/health", headers={"X-Request-Id": "req-123"})

        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["status"], "ok")
        self.assertEqual(payload["service"], FRIENDLY_TERMS["app_name"])
        self.assertEqual(payload["db"], "sqlite")
        self.assertEqual(response.headers["X-Request-Id"], "req-123")
        self.assertEqual(response.headers["X-Content-Type-Options"], "nosniff")
        self.assertEqual(response.headers["X-Frame-Options"], "DENY")
        self.assertEqual(response.headers["Cache-Control"], "no-store")
        self.assertNotIn("Strict-Transport-Security", response.headers)

    def test_http_metrics_count_errors(self) -> None:
        self.client.get("/ofertas/enviadas")
        self.client.get("/health")

        snapshot = metrics_snapshot()
        self.assertEqual(snapshot["requests_total"], 2)
        self.assertEqual(snapshot["errors_total"], 1)


class UnexpectedErrorTest(_AppTestCase):
    overrides = {"AUTH_ENABLED": True}

    def test_stack_trace_not_exposed_for_unhandled_error(self) -> None:
        with patch.object(OfferService, "list_sent", side_effect=RuntimeError("stack_secret_token")):
            response = self.client.get("/ofertas/enviadas", headers=auth_headers(BUYER, JWT_SECRET))

        self.assertEqual(response.status_code, 500)
        payload = response.get_json()
        self.assertEqual(payload["error"], "unexpected_error")
        self.assertEqual(payload["message"], error_message("unexpected_error"))
        body = response.get_data(as_text=True)
        self.assertNotIn("Traceback", body)
        self.assertNotIn("stack_secret_token", body)

    def test_unknown_route_keeps_http_status(self) -> None:
        response = self.client.get("/nao-existe", headers=auth_headers(BUYER, JWT_SECRET))
        self.assertEqual(response.status_code, 404)


class GatewayHeadersTest(_AppTestCase):
    overrides = {"AUTH_ENABLED": False, "SECURITY_HEADERS_ENABLED": False}

    def test_identity_comes_from_gateway_headers(self) -> None:
        response = self.client.get(
            "/ofertas/enviadas", headers={"X-User-Id": BUYER.user_id, "X-User-Role": "comprador"}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["ofertas"], [])
        self.assertNotIn("X-Frame-Options", response.headers)

    def test_missing_gateway_headers_are_rejected(self) -> None:
        response = self.client.get("/ofertas/enviadas", headers={"X-User-Id": BUYER.user_id})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json()["error"], "auth_required")


if __name__ == "__main__":
    unittest.main()
