import json
import logging
import unittest
from decimal import Decimal

from creditojus.observability import (
    JsonLogFormatter,
    metrics_snapshot,
    observe_transition,
    observe_unit_of_work_rollback,
    reset_metrics_for_tests,
    set_log_request_id,
)


class JsonLogFormatterTest(unittest.TestCase):
    def _record(self, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            name="creditojus.offers",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="offer_transition",
            args=(),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extras_are_flattened_into_the_payload(self) -> None:
        line = JsonLogFormatter().format(self._record(offer_id=7, amount=Decimal("10.50"), status="accepted"))
        payload = json.loads(line)

        self.assertEqual(payload["level"], "info")
        self.assertEqual(payload["logger"], "creditojus.offers")
        self.assertEqual(payload["message"], "offer_transition")
        self.assertEqual(payload["offer_id"], 7)
        self.assertEqual(payload["amount"], 10.5)
        self.assertEqual(payload["status"], "accepted")
        self.assertTrue(payload["ts"].endswith("Z"))

    def test_request_id_outside_request_context(self) -> None:
        formatter = JsonLogFormatter()

        explicit = json.loads(formatter.format(self._record(request_id="req-1")))
        self.assertEqual(explicit["request_id"], "req-1")

        set_log_request_id("req-bound")
        try:
            bound = json.loads(formatter.format(self._record()))
        finally:
            set_log_request_id(None)
        self.assertEqual(bound["request_id"], "req-bound")


class MetricsRegistryTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()

    def tearDown(self) -> None:
        reset_metrics_for_tests()

    def test_transitions_and_rollbacks_are_counted(self) -> None:
        observe_transition("oferta", "accepted")
        observe_transition("oferta", "accepted")
        observe_transition("transacao", "started")
        observe_unit_of_work_rollback()

        snapshot = metrics_snapshot()

        self.assertEqual(snapshot["transitions"], {"oferta:accepted": 2, "transacao:started": 1})
        self.assertEqual(snapshot["unit_of_work_rollbacks"], 1)
        self.assertEqual(snapshot["requests_total"], 0)

    def test_reset_clears_everything(self) -> None:
        observe_transition("oferta", "rejected")
        reset_metrics_for_tests()
        self.assertEqual(metrics_snapshot()["transitions"], {})


if __name__ == "__main__":
    unittest.main()
