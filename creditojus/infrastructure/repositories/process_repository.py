from __future__ import annotations

from creditojus.infrastructure.repositories.base import BaseRepository


class ProcessRepository(BaseRepository):
    table = "processes"
    history_table = "process_status_history"
    history_fk = "process_id"

    def create(
        self,
        db,
        *,
        owner_id: str,
        status: str,
        title: str | None = None,
        estimated_value: str | None = None,
        accepts_offers: bool = True,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO processes (owner_id, title, status, estimated_value, accepts_offers)
            VALUES (?, ?, ?, ?, ?)
            RETURNING id
            """,
            (owner_id, title, status, estimated_value, bool(accepts_offers)),
        )
        return self.inserted_id(cursor)

    def update_status(self, db, process_id: int, status: str, at: str) -> None:
        db.execute(
            """
            UPDATE processes
            SET status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, at, process_id),
        )

    def set_accepted_offer(self, db, process_id: int, offer_id: int | None, at: str) -> None:
        db.execute(
            """
            UPDATE processes
            SET accepted_offer_id = ?, updated_at = ?
            WHERE id = ?
            """,
            (offer_id, at, process_id),
        )

    def set_has_offers(self, db, process_id: int, has_offers: bool, at: str) -> None:
        db.execute(
            """
            UPDATE processes
            SET has_offers = ?, updated_at = ?
            WHERE id = ?
            """,
            (bool(has_offers), at, process_id),
        )
