from __future__ import annotations

from creditojus.infrastructure.repositories.base import BaseRepository


class TransactionRepository(BaseRepository):
    table = "transactions"
    history_table = "transaction_status_history"
    history_fk = "transaction_id"

    def get_by_offer(self, db, offer_id: int) -> dict | None:
        row = db.execute(
            "SELECT * FROM transactions WHERE offer_id = ? LIMIT 1",
            (offer_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def create(
        self,
        db,
        *,
        offer_id: int,
        process_id: int,
        seller_id: str,
        buyer_id: str,
        amount: str,
        commission: str,
        net_amount: str,
        status: str,
        created_at: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO transactions (
                offer_id, process_id, seller_id, buyer_id, amount, commission, net_amount, status, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (offer_id, process_id, seller_id, buyer_id, amount, commission, net_amount, status, created_at),
        )
        return self.inserted_id(cursor)

    def update_status(self, db, transaction_id: int, status: str, at: str) -> None:
        db.execute(
            """
            UPDATE transactions
            SET status = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, at, transaction_id),
        )

    def register_payment(self, db, transaction_id: int, *, proof: str, note: str | None, status: str, at: str) -> None:
        db.execute(
            """
            UPDATE transactions
            SET payment_proof = ?, payment_note = ?, payment_date = ?, status = ?, updated_at = ?
            WHERE id = ?
            """,
            (proof, note, at, status, at, transaction_id),
        )

    def complete(self, db, transaction_id: int, *, status: str, at: str) -> None:
        db.execute(
            """
            UPDATE transactions
            SET status = ?, completion_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, at, at, transaction_id),
        )

    def cancel(self, db, transaction_id: int, *, status: str, reason: str, cancelled_by: str, at: str) -> None:
        db.execute(
            """
            UPDATE transactions
            SET status = ?, cancellation_reason = ?, cancelled_by = ?, cancellation_date = ?, updated_at = ?
            WHERE id = ?
            """,
            (status, reason, cancelled_by, at, at, transaction_id),
        )

    def add_document(
        self,
        db,
        transaction_id: int,
        *,
        name: str,
        mime_type: str | None,
        path: str,
        size: int,
        submitted_by: str,
        at: str,
    ) -> int:
        cursor = db.execute(
            """
            INSERT INTO transaction_documents (transaction_id, name, mime_type, path, size, submitted_by, uploaded_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            RETURNING id
            """,
            (transaction_id, name, mime_type, path, int(size), submitted_by, at),
        )
        return self.inserted_id(cursor)

    def list_documents(self, db, transaction_id: int) -> list[dict]:
        rows = db.execute(
            """
            SELECT id, name, mime_type, path, size, submitted_by, uploaded_at
            FROM transaction_documents
            WHERE transaction_id = ?
            ORDER BY id ASC
            """,
            (transaction_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)

    def list_for_user(self, db, user_id: str, *, status: str | None = None) -> list[dict]:
        clauses = ["(seller_id = ? OR buyer_id = ?)"]
        params: list = [user_id, user_id]
        if status:
            clauses.append("status = ?")
            params.append(status)
        rows = db.execute(
            f"""
            SELECT *
            FROM transactions
            WHERE {" AND ".join(clauses)}
            ORDER BY created_at DESC, id DESC
            """,
            params,
        ).fetchall()
        return self.rows_to_dicts(rows)
