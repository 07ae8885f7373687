from __future__ import annotations

from typing import Iterable

from creditojus.infrastructure.repositories.base import BaseRepository


class OfferRepository(BaseRepository):
    table = "offers"
    history_table = "offer_status_history"
    history_fk = "offer_id"

    def create(
        self,
        db,
        *,
        process_id: int,
        seller_id: str,
        buyer_id: str,
        amount: str,
        message: str | None,
        special_terms: str | None,
        status: str,
        valid_until: str,
        created_at: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO offers (
                process_id, seller_id, buyer_id, amount, message, special_terms, status, valid_until, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (process_id, seller_id, buyer_id, amount, message, special_terms, status, valid_until, created_at),
        )
        return self.inserted_id(cursor)

    def find_for_buyer(self, db, process_id: int, buyer_id: str, statuses: Iterable[str]) -> dict | None:
        status_list = list(statuses)
        placeholders = ",".join("?" for _ in status_list)
        row = db.execute(
            f"""
            SELECT *
            FROM offers
            WHERE process_id = ? AND buyer_id = ? AND status IN ({placeholders})
            ORDER BY id ASC
            LIMIT 1
            """,
            (process_id, buyer_id, *status_list),
        ).fetchone()
        return self.row_to_dict(row)

    def list_by_process_status(
        self,
        db,
        process_id: int,
        statuses: Iterable[str],
        *,
        exclude_offer_id: int | None = None,
    ) -> list[dict]:
        status_list = list(statuses)
        placeholders = ",".join("?" for _ in status_list)
        params: list = [process_id, *status_list]
        exclusion = ""
        if exclude_offer_id is not None:
            exclusion = "AND id <> ?"
            params.append(exclude_offer_id)
        rows = db.execute(
            f"""
            SELECT *
            FROM offers
            WHERE process_id = ? AND status IN ({placeholders}) {exclusion}
            ORDER BY id ASC
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)

    def count_by_process_status(self, db, process_id: int, statuses: Iterable[str]) -> int:
        status_list = list(statuses)
        placeholders = ",".join("?" for _ in status_list)
        row = db.execute(
            f"""
            SELECT COUNT(*) AS total
            FROM offers
            WHERE process_id = ? AND status IN ({placeholders})
            """,
            (process_id, *status_list),
        ).fetchone()
        return int(row["total"] if row else 0)

    def update_status(self, db, offer_id: int, status: str, at: str) -> None:
        db.execute(
            """
            UPDATE offers
            SET status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, at, offer_id),
        )

    def update_terms(
        self,
        db,
        offer_id: int,
        *,
        amount: str,
        message: str | None,
        special_terms: str | None,
        valid_until: str,
        status: str,
        at: str,
    ) -> None:
        db.execute(
            """
            UPDATE offers
            SET amount = ?, message = ?, special_terms = ?, valid_until = ?, status = ?, updated_at = ?
            WHERE id = ?
            """,
            (amount, message, special_terms, valid_until, status, at, offer_id),
        )

    def append_negotiation(
        self,
        db,
        offer_id: int,
        *,
        kind: str,
        recorded_by: str | None,
        amount: str | None,
        message: str | None,
        special_terms: str | None,
        at: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO offer_negotiation_history (offer_id, kind, recorded_by, amount, message, special_terms, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (offer_id, kind, recorded_by, amount, message, special_terms, at),
        )
        return self.inserted_id(cursor)

    def list_negotiation_history(self, db, offer_id: int) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, kind, recorded_by, amount, message, special_terms, created_at
            FROM offer_negotiation_history
            WHERE offer_id = ?
            ORDER BY id ASC
            """,
            (offer_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def list_for_party(
        self,
        db,
        *,
        party_column: str,
        user_id: str,
        status: str | None = None,
        process_id: int | None = None,
    ) -> list[dict]:
        if party_column not in {"seller_id", "buyer_id"}:
            raise ValueError(f"unsupported party column: {party_column}")
        clauses = [f"{party_column} = ?"]
        params: list = [user_id]
        if status:
            clauses.append("status = ?")
            params.append(status)
        if process_id is not None:
            clauses.append("process_id = ?")
            params.append(process_id)
        rows = db.execute(
            f"""
            SELECT *
            FROM offers
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, id DESC
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)
