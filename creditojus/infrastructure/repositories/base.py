from __future__ import annotations

from typing import Any, Iterable


class BaseRepository:
    table: str = ""
    history_table: str = ""
    history_fk: str = ""

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def row_to_dict(row: Any) -> dict | None:
        return dict(row) if row else None

    @staticmethod
    def inserted_id(cursor) -> int:
        # Drain the cursor: sqlite keeps a RETURNING statement open until exhausted.
        row = cursor.fetchall()[0]
        return int(row["id"] if isinstance(row, dict) else row[0])

    def get(self, db, entity_id: int) -> dict | None:
        row = db.execute(
            f"SELECT * FROM {self.table} WHERE id = ? LIMIT 1",
            (entity_id,),
        ).fetchone()
        return self.row_to_dict(row)

    def lock(self, db, entity_id: int) -> dict | None:
        """Reads the row holding a write lock for the rest of the unit of work.

        sqlite already holds the database write lock after BEGIN IMMEDIATE.
        """
        if db.backend == "postgres":
            row = db.execute(
                f"SELECT * FROM {self.table} WHERE id = ? FOR UPDATE",
                (entity_id,),
            ).fetchone()
            return self.row_to_dict(row)
        return self.get(db, entity_id)

    def append_status_history(self, db, entity_id: int, status: str, note: str | None, at: str) -> int:
        cursor = db.execute(
            f"""
            INSERT INTO {self.history_table} ({self.history_fk}, status, note, created_at)
            VALUES (?, ?, ?, ?)
            RETURNING id
            """,
            (entity_id, status, note, at),
        )
        return self.inserted_id(cursor)

    def list_status_history(self, db, entity_id: int) -> list[dict]:
        rows = db.execute(
            f"""
            SELECT id, status, note, created_at
            FROM {self.history_table}
            WHERE {self.history_fk} = ?
            ORDER BY id ASC
            """,
            (entity_id,),
        ).fetchall()
        return self.rows_to_dicts(rows)
