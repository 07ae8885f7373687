import sqlite3
import unittest
from unittest.mock import patch

from creditojus.application.offer_service import OfferService
from creditojus.application.transaction_service import TransactionService
from creditojus.core import EventBus
from creditojus.core.event_bus import OfferAccepted
from creditojus.infrastructure.repositories import OfferRepository, ProcessRepository, TransactionRepository
from creditojus.observability import metrics_snapshot, reset_metrics_for_tests
from tests.helpers.factories import BUYER, OTHER_BUYER, SELLER, offer_input, seed_process
from tests.helpers.temp_db import TempDbSandbox


class UnitOfWorkTest(unittest.TestCase):
    def setUp(self) -> None:
        reset_metrics_for_tests()
        self._temp_db = TempDbSandbox(prefix="unit_of_work")
        self.db = self._temp_db.open_database()
        self.bus = EventBus()
        self.offer_service = OfferService(event_bus=self.bus)
        self.process_id = seed_process(self.db)
        self.offers = OfferRepository()
        self.processes = ProcessRepository()

    def tearDown(self) -> None:
        self.db.close()
        self._temp_db.cleanup()
        reset_metrics_for_tests()

    def _offer(self, principal) -> int:
        result = self.offer_service.create(self.db, principal=principal, create_input=offer_input(self.process_id))
        return result.payload["oferta"]["id"]

    def test_failed_accept_leaves_no_partial_state(self) -> None:
        first = self._offer(BUYER)
        second = self._offer(OTHER_BUYER)
        history_before = self.offers.list_status_history(self.db, first)
        published = []
        self.bus.subscribe(OfferAccepted, published.append)

        with patch.object(
            self.offer_service.processes,
            "set_accepted_offer",
            side_effect=RuntimeError("falha simulada"),
        ):
            with self.assertRaises(RuntimeError):
                self.offer_service.accept(self.db, principal=SELLER, offer_id=first)

        self.assertEqual(self.offers.get(self.db, first)["status"], "pending")
        self.assertEqual(self.offers.get(self.db, second)["status"], "pending")
        self.assertEqual(self.offers.list_status_history(self.db, first), history_before)
        process = self.processes.get(self.db, self.process_id)
        self.assertEqual(process["status"], "active")
        self.assertIsNone(process["accepted_offer_id"])
        self.assertEqual(published, [])
        self.assertEqual(metrics_snapshot()["unit_of_work_rollbacks"], 1)

    def test_failed_start_rolls_back_transaction_row(self) -> None:
        offer_id = self._offer(BUYER)
        self.offer_service.accept(self.db, principal=SELLER, offer_id=offer_id)
        transaction_service = TransactionService(event_bus=self.bus)

        with patch.object(
            transaction_service.processes,
            "update_status",
            side_effect=RuntimeError("falha simulada"),
        ):
            with self.assertRaises(RuntimeError):
                transaction_service.start(self.db, principal=BUYER, offer_id=offer_id)

        self.assertIsNone(TransactionRepository().get_by_offer(self.db, offer_id))
        self.assertEqual(self.offers.get(self.db, offer_id)["status"], "accepted")
        self.assertEqual(self.processes.get(self.db, self.process_id)["status"], "offer_accepted")

    def test_nested_units_join_the_outer_one(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.db.transaction():
                self.processes.update_status(self.db, self.process_id, "archived", "2026-10-17T00:00:00+00:00")
                with self.db.transaction():
                    self.assertTrue(self.db.in_transaction)
                raise RuntimeError("abort")

        self.assertFalse(self.db.in_transaction)
        self.assertEqual(self.processes.get(self.db, self.process_id)["status"], "active")

    def test_history_tables_are_append_only(self) -> None:
        offer_id = self._offer(BUYER)

        with self.assertRaises(sqlite3.DatabaseError):
            self.db.execute("UPDATE offer_status_history SET note = 'alterado' WHERE offer_id = ?", (offer_id,))
        with self.assertRaises(sqlite3.DatabaseError):
            self.db.execute("DELETE FROM offer_status_history WHERE offer_id = ?", (offer_id,))

        self.assertEqual(self.offers.list_status_history(self.db, offer_id)[0]["note"], "Oferta criada")


if __name__ == "__main__":
    unittest.main()
