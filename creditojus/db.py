import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterable, Iterator

try:
    import psycopg2
    import psycopg2.extras
except ImportError:  # pragma: no cover - optional dependency for postgres
    psycopg2 = None

from flask import current_app, g

from creditojus.negotiation.statuses import (
    NegotiationKind,
    OfferStatus,
    Party,
    ProcessStatus,
    TransactionStatus,
    values,
)
from creditojus.observability import observe_unit_of_work_rollback


LOGGER = logging.getLogger("creditojus.db")

PROCESS_STATUSES = values(ProcessStatus)
OFFER_STATUSES = values(OfferStatus)
TRANSACTION_STATUSES = values(TransactionStatus)
NEGOTIATION_KINDS = values(NegotiationKind)
PARTIES = values(Party)

APPEND_ONLY_TABLES = (
    "process_status_history",
    "offer_status_history",
    "offer_negotiation_history",
    "transaction_status_history",
    "transaction_documents",
)


class Database:
    def __init__(self, backend: str, connection):
        self.backend = backend
        self._conn = connection
        self._in_transaction = False

    def execute(self, sql: str, params: Iterable | None = None):
        if self.backend == "postgres":
            cursor = self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            if params:
                sql = _convert_qmark_to_pg(sql)
                cursor.execute(sql, list(params))
            else:
                cursor.execute(sql)
            return cursor
        return self._conn.execute(sql, params or ())

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @contextmanager
    def transaction(self) -> Iterator["Database"]:
        """Unit of work: commit on success, rollback and re-raise on any error.

        Nested calls join the outer unit. On sqlite ``BEGIN IMMEDIATE`` takes the
        write lock up front so concurrent writers are serialized.
        """
        if self._in_transaction:
            yield self
            return

        self.execute("BEGIN IMMEDIATE" if self.backend == "sqlite" else "BEGIN")
        self._in_transaction = True
        try:
            yield self
            self.execute("COMMIT")
        except Exception as exc:
            self._rollback_quietly()
            observe_unit_of_work_rollback()
            LOGGER.warning(
                "unit_of_work_rolled_back",
                extra={"backend": self.backend, "error_type": type(exc).__name__},
            )
            raise
        finally:
            self._in_transaction = False

    def _rollback_quietly(self) -> None:
        try:
            self.execute("ROLLBACK")
        except Exception:  # noqa: BLE001
            LOGGER.exception("unit_of_work_rollback_failed", extra={"backend": self.backend})

    def commit(self):
        self._conn.commit()

    def close(self):
        self._conn.close()


def _convert_qmark_to_pg(sql: str) -> str:
    return sql.replace("?", "%s")


def connect_database(db_path: str) -> Database:
    if db_path.lower().startswith("postgres"):
        if psycopg2 is None:
            raise RuntimeError("psycopg2 nao instalado.")
        conn = psycopg2.connect(db_path)
        conn.autocommit = True
        return Database("postgres", conn)

    conn = sqlite3.connect(db_path, timeout=30.0, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return Database("sqlite", conn)


def get_db() -> Database:
    if "db" not in g:
        g.db = connect_database(current_app.config["DB_PATH"])
    return g.db


def close_db(_error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    init_schema(get_db())


def init_schema(db: Database) -> None:
    if db.backend == "postgres":
        _init_db_postgres(db)
        return
    _init_db_sqlite(db)


def _in_clause(values: Iterable[str]) -> str:
    return ",".join(f"'{value}'" for value in values)


def _init_db_sqlite(db) -> None:
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS processes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id TEXT NOT NULL,
            title TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({_in_clause(PROCESS_STATUSES)})),
            estimated_value TEXT,
            accepts_offers INTEGER NOT NULL DEFAULT 1,
            has_offers INTEGER NOT NULL DEFAULT 0,
            accepted_offer_id INTEGER,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS process_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            process_id INTEGER NOT NULL REFERENCES processes(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(PROCESS_STATUSES)})),
            note TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            process_id INTEGER NOT NULL REFERENCES processes(id),
            seller_id TEXT NOT NULL,
            buyer_id TEXT NOT NULL,
            amount TEXT NOT NULL,
            message TEXT,
            special_terms TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({_in_clause(OFFER_STATUSES)})),
            valid_until TEXT NOT NULL,
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offer_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            offer_id INTEGER NOT NULL REFERENCES offers(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(OFFER_STATUSES)})),
            note TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offer_negotiation_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            offer_id INTEGER NOT NULL REFERENCES offers(id),
            kind TEXT NOT NULL CHECK (kind IN ({_in_clause(NEGOTIATION_KINDS)})),
            recorded_by TEXT CHECK (recorded_by IS NULL OR recorded_by IN ({_in_clause(PARTIES)})),
            amount TEXT,
            message TEXT,
            special_terms TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            offer_id INTEGER NOT NULL UNIQUE REFERENCES offers(id),
            process_id INTEGER NOT NULL REFERENCES processes(id),
            seller_id TEXT NOT NULL,
            buyer_id TEXT NOT NULL,
            amount TEXT NOT NULL,
            commission TEXT NOT NULL,
            net_amount TEXT NOT NULL,
            status TEXT NOT NULL DEFAULT 'started' CHECK (status IN ({_in_clause(TRANSACTION_STATUSES)})),
            payment_date TEXT,
            payment_proof TEXT,
            payment_note TEXT,
            completion_date TEXT,
            cancellation_date TEXT,
            cancellation_reason TEXT,
            cancelled_by TEXT CHECK (cancelled_by IS NULL OR cancelled_by IN ({_in_clause(PARTIES)})),
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transaction_status_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_id INTEGER NOT NULL REFERENCES transactions(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(TRANSACTION_STATUSES)})),
            note TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transaction_documents (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            transaction_id INTEGER NOT NULL REFERENCES transactions(id),
            name TEXT NOT NULL,
            mime_type TEXT,
            path TEXT NOT NULL,
            size INTEGER NOT NULL DEFAULT 0,
            submitted_by TEXT NOT NULL CHECK (submitted_by IN ({_in_clause(PARTIES)})),
            uploaded_at TEXT NOT NULL
        )
        """
    )

    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_process_status ON offers(process_id, status)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_buyer ON offers(buyer_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_seller ON offers(seller_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_transactions_parties ON transactions(seller_id, buyer_id)")

    for table in APPEND_ONLY_TABLES:
        for operation in ("UPDATE", "DELETE"):
            db.execute(
                f"""
                CREATE TRIGGER IF NOT EXISTS trg_{table}_no_{operation.lower()}
                BEFORE {operation} ON {table}
                BEGIN
                    SELECT RAISE(ABORT, '{table} is append-only');
                END
                """
            )


def _init_db_postgres(db) -> None:
    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS processes (
            id SERIAL PRIMARY KEY,
            owner_id TEXT NOT NULL,
            title TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({_in_clause(PROCESS_STATUSES)})),
            estimated_value NUMERIC(14,2),
            accepts_offers BOOLEAN NOT NULL DEFAULT TRUE,
            has_offers BOOLEAN NOT NULL DEFAULT FALSE,
            accepted_offer_id INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS process_status_history (
            id SERIAL PRIMARY KEY,
            process_id INTEGER NOT NULL REFERENCES processes(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(PROCESS_STATUSES)})),
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offers (
            id SERIAL PRIMARY KEY,
            process_id INTEGER NOT NULL REFERENCES processes(id),
            seller_id TEXT NOT NULL,
            buyer_id TEXT NOT NULL,
            amount NUMERIC(14,2) NOT NULL CHECK (amount > 0),
            message TEXT,
            special_terms TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ({_in_clause(OFFER_STATUSES)})),
            valid_until TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offer_status_history (
            id SERIAL PRIMARY KEY,
            offer_id INTEGER NOT NULL REFERENCES offers(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(OFFER_STATUSES)})),
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS offer_negotiation_history (
            id SERIAL PRIMARY KEY,
            offer_id INTEGER NOT NULL REFERENCES offers(id),
            kind TEXT NOT NULL CHECK (kind IN ({_in_clause(NEGOTIATION_KINDS)})),
            recorded_by TEXT CHECK (recorded_by IS NULL OR recorded_by IN ({_in_clause(PARTIES)})),
            amount NUMERIC(14,2),
            message TEXT,
            special_terms TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transactions (
            id SERIAL PRIMARY KEY,
            offer_id INTEGER NOT NULL UNIQUE REFERENCES offers(id),
            process_id INTEGER NOT NULL REFERENCES processes(id),
            seller_id TEXT NOT NULL,
            buyer_id TEXT NOT NULL,
            amount NUMERIC(14,2) NOT NULL,
            commission NUMERIC(14,2) NOT NULL,
            net_amount NUMERIC(14,2) NOT NULL,
            status TEXT NOT NULL DEFAULT 'started' CHECK (status IN ({_in_clause(TRANSACTION_STATUSES)})),
            payment_date TIMESTAMPTZ,
            payment_proof TEXT,
            payment_note TEXT,
            completion_date TIMESTAMPTZ,
            cancellation_date TIMESTAMPTZ,
            cancellation_reason TEXT,
            cancelled_by TEXT CHECK (cancelled_by IS NULL OR cancelled_by IN ({_in_clause(PARTIES)})),
            created_at TIMESTAMPTZ NOT NULL,
            updated_at TIMESTAMPTZ
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transaction_status_history (
            id SERIAL PRIMARY KEY,
            transaction_id INTEGER NOT NULL REFERENCES transactions(id),
            status TEXT NOT NULL CHECK (status IN ({_in_clause(TRANSACTION_STATUSES)})),
            note TEXT,
            created_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS transaction_documents (
            id SERIAL PRIMARY KEY,
            transaction_id INTEGER NOT NULL REFERENCES transactions(id),
            name TEXT NOT NULL,
            mime_type TEXT,
            path TEXT NOT NULL,
            size INTEGER NOT NULL DEFAULT 0,
            submitted_by TEXT NOT NULL CHECK (submitted_by IN ({_in_clause(PARTIES)})),
            uploaded_at TIMESTAMPTZ NOT NULL
        )
        """
    )

    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_process_status ON offers(process_id, status)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_buyer ON offers(buyer_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_offers_seller ON offers(seller_id, created_at)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_transactions_parties ON transactions(seller_id, buyer_id)")

    _create_postgres_append_only_triggers(db)


def _create_postgres_append_only_triggers(db) -> None:
    db.execute(
        """
        CREATE OR REPLACE FUNCTION forbid_history_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION USING MESSAGE = TG_TABLE_NAME || ' is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )

    for table in APPEND_ONLY_TABLES:
        db.execute(
            f"""
            DROP TRIGGER IF EXISTS trg_{table}_append_only ON {table};
            CREATE TRIGGER trg_{table}_append_only
            BEFORE UPDATE OR DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION forbid_history_mutation();
            """
        )


def drop_schema(db) -> None:
    tables = [
        "transaction_documents",
        "transaction_status_history",
        "transactions",
        "offer_negotiation_history",
        "offer_status_history",
        "offers",
        "process_status_history",
        "processes",
    ]
    if db.backend == "postgres":
        db.execute("DROP FUNCTION IF EXISTS forbid_history_mutation() CASCADE")
    for table in tables:
        db.execute(f"DROP TABLE IF EXISTS {table}")
