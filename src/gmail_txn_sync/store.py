"""SQLite persistence for credentials, transactions, scanned messages and sessions."""

from __future__ import annotations

import sqlite3
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from gmail_txn_sync.constants import DATABASE_PATH
from gmail_txn_sync.errors import DuplicateTransactionError
from gmail_txn_sync.models import (
    CandidateTransaction,
    Currency,
    MailCredential,
    TransactionMethod,
    TransactionType,
)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS credentials (
    user_id TEXT PRIMARY KEY,
    refresh_token TEXT,
    last_synced_internal_date_ms INTEGER,
    last_synced_message_id TEXT,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    message_id TEXT,
    fingerprint TEXT,
    sender TEXT,
    description TEXT,
    amount TEXT,
    currency TEXT,
    date TEXT,
    type TEXT,
    method TEXT,
    merchant TEXT,
    source TEXT,
    created_at TEXT,
    UNIQUE (user_id, fingerprint)
);

CREATE INDEX IF NOT EXISTS idx_transactions_user_message ON transactions (user_id, message_id);

CREATE TABLE IF NOT EXISTS scanned_messages (
    user_id TEXT NOT NULL,
    message_id TEXT NOT NULL,
    internal_date_ms INTEGER,
    outcome TEXT,
    scanned_at TEXT,
    PRIMARY KEY (user_id, message_id)
);

CREATE TABLE IF NOT EXISTS sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    revoked INTEGER NOT NULL DEFAULT 0,
    created_at TEXT
);
"""


def _now() -> str:
    return datetime.now().isoformat()


class _Table:
    def __init__(self, conn: sqlite3.Connection, lock: threading.RLock) -> None:
        self._conn = conn
        self._lock = lock


class CredentialStore(_Table):
    """Gmail refresh tokens and per-user watermarks."""

    def get(self, user_id: str) -> MailCredential | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM credentials WHERE user_id = ?", (user_id,)
            ).fetchone()
        return _credential_from_row(row) if row else None

    def all(self) -> list[MailCredential]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM credentials ORDER BY user_id").fetchall()
        return [_credential_from_row(r) for r in rows]

    def save(self, credential: MailCredential) -> None:
        credential.updated_at = _now()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT INTO credentials (user_id, refresh_token, last_synced_internal_date_ms, "
                "last_synced_message_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET refresh_token = excluded.refresh_token, "
                "last_synced_internal_date_ms = excluded.last_synced_internal_date_ms, "
                "last_synced_message_id = excluded.last_synced_message_id, "
                "updated_at = excluded.updated_at",
                (
                    credential.user_id,
                    credential.refresh_token,
                    credential.last_synced_internal_date_ms,
                    credential.last_synced_message_id,
                    credential.created_at,
                    credential.updated_at,
                ),
            )

    def update_watermark(self, user_id: str, internal_date_ms: int, message_id: str) -> bool:
        """Advance the watermark; a value not newer than the stored one is ignored."""
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE credentials SET last_synced_internal_date_ms = ?, last_synced_message_id = ?, "
                "updated_at = ? WHERE user_id = ? AND (last_synced_internal_date_ms IS NULL "
                "OR last_synced_internal_date_ms < ?)",
                (internal_date_ms, message_id, _now(), user_id, internal_date_ms),
            )
        return cursor.rowcount > 0

    def delete(self, user_id: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM credentials WHERE user_id = ?", (user_id,))
        return cursor.rowcount > 0


class TransactionStore(_Table):
    """Persisted transactions, unique per (user, fingerprint)."""

    def find_by_message_id(self, user_id: str, message_id: str) -> CandidateTransaction | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM transactions WHERE user_id = ? AND message_id = ? LIMIT 1",
                (user_id, message_id),
            ).fetchone()
        return _transaction_from_row(row) if row else None

    def save(self, tx: CandidateTransaction) -> None:
        """Insert a transaction; raises DuplicateTransactionError on a repeated fingerprint."""
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO transactions (user_id, message_id, fingerprint, sender, description, "
                    "amount, currency, date, type, method, merchant, source, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        tx.user_id,
                        tx.message_id,
                        tx.fingerprint,
                        tx.sender,
                        tx.description,
                        str(tx.amount),
                        tx.currency.value,
                        tx.date.isoformat(),
                        tx.type.value,
                        tx.method.value,
                        tx.merchant,
                        tx.source,
                        _now(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateTransactionError(tx.user_id, tx.fingerprint) from exc

    def list_for_user(self, user_id: str, limit: int | None = None) -> list[CandidateTransaction]:
        sql = "SELECT * FROM transactions WHERE user_id = ? ORDER BY date DESC, id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (user_id, limit)
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [_transaction_from_row(r) for r in rows]

    def count_for_user(self, user_id: str) -> int:
        with self._lock:
            return self._conn.execute(
                "SELECT COUNT(*) AS c FROM transactions WHERE user_id = ?", (user_id,)
            ).fetchone()["c"]


class ScannedMessageStore(_Table):
    """Ledger of messages a sync run has fully evaluated, whatever the outcome."""

    def is_scanned(self, user_id: str, message_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM scanned_messages WHERE user_id = ? AND message_id = ?",
                (user_id, message_id),
            ).fetchone()
        return row is not None

    def mark_scanned(
        self, user_id: str, message_id: str, internal_date_ms: int | None, outcome: str
    ) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO scanned_messages "
                "(user_id, message_id, internal_date_ms, outcome, scanned_at) VALUES (?, ?, ?, ?, ?)",
                (user_id, message_id, internal_date_ms, outcome, _now()),
            )


class SessionStore(_Table):
    """Login sessions; a user is eligible for sync only while one is unrevoked."""

    def open_session(self, user_id: str) -> int:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO sessions (user_id, revoked, created_at) VALUES (?, 0, ?)",
                (user_id, _now()),
            )
        return cursor.lastrowid

    def revoke_all(self, user_id: str) -> int:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE sessions SET revoked = 1 WHERE user_id = ? AND revoked = 0", (user_id,)
            )
        return cursor.rowcount

    def has_active_session(self, user_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM sessions WHERE user_id = ? AND revoked = 0 LIMIT 1", (user_id,)
            ).fetchone()
        return row is not None


class Database:
    """Persistent SQLite store shared by the sync engine, orchestrator and CLI."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or DATABASE_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

        self.credentials = CredentialStore(self._conn, self._lock)
        self.transactions = TransactionStore(self._conn, self._lock)
        self.scanned = ScannedMessageStore(self._conn, self._lock)
        self.sessions = SessionStore(self._conn, self._lock)

    def _create_tables(self) -> None:
        with self._lock:
            self._conn.executescript(_CREATE_TABLES_SQL)

    def get_info(self) -> dict:
        """Return database statistics."""
        file_size = self.db_path.stat().st_size if self.db_path.exists() else 0
        with self._lock:
            counts = {
                table: self._conn.execute(f"SELECT COUNT(*) AS c FROM {table}").fetchone()["c"]
                for table in ("credentials", "transactions", "scanned_messages")
            }
        return {
            "db_file_size": file_size,
            "credential_count": counts["credentials"],
            "transaction_count": counts["transactions"],
            "scanned_count": counts["scanned_messages"],
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()


def _credential_from_row(row: sqlite3.Row) -> MailCredential:
    return MailCredential(
        user_id=row["user_id"],
        refresh_token=row["refresh_token"] or "",
        last_synced_internal_date_ms=row["last_synced_internal_date_ms"],
        last_synced_message_id=row["last_synced_message_id"],
        created_at=row["created_at"] or "",
        updated_at=row["updated_at"] or "",
    )


def _transaction_from_row(row: sqlite3.Row) -> CandidateTransaction:
    return CandidateTransaction(
        user_id=row["user_id"],
        message_id=row["message_id"],
        sender=row["sender"] or "",
        description=row["description"] or "",
        amount=Decimal(row["amount"]),
        currency=Currency(row["currency"]),
        date=date.fromisoformat(row["date"]),
        type=TransactionType(row["type"]),
        method=TransactionMethod(row["method"]),
        merchant=row["merchant"] or "",
        fingerprint=row["fingerprint"],
        source=row["source"] or "regex",
    )
