"""
SQLite persistence backend for the consent ledger notification journal.

Stores every published notification as one row keyed by its sequence
number, so the full registry state can be replayed after a restart.
Uses WAL journal mode for concurrent read/write access and thread-local
connections for thread safety. An in-memory database exists per
connection, so ":memory:" shares a single connection across threads.
"""

import sqlite3
import json
import threading
from pathlib import Path
from typing import Optional, List, Union

import structlog

from consent_ledger.core.models import Notification, NotificationKind
from consent_ledger.core.exceptions import JournalError
from .notifications import notification_from_dict

logger = structlog.get_logger(__name__)

DEFAULT_DB_PATH = Path("data/ledger.db")


class LedgerDB:
    """Thread-safe SQLite journal of change notifications."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize ledger database.

        Args:
            db_path: Path to SQLite database file. Use ':memory:' for testing.
                     Defaults to 'data/ledger.db'.
        """
        if db_path == ":memory:":
            self.db_path = ":memory:"
        else:
            self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.RLock()
        self._connections: List[sqlite3.Connection] = []
        self._shared: Optional[sqlite3.Connection] = None
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        self._connections.append(conn)
        return conn

    def _get_conn(self) -> sqlite3.Connection:
        """Get thread-local connection, or the shared in-memory one."""
        with self._lock:
            if self.db_path == ":memory:":
                if self._shared is None:
                    self._shared = self._connect()
                return self._shared
            if getattr(self._local, "conn", None) is None:
                self._local.conn = self._connect()
            return self._local.conn

    def _init_schema(self):
        """Create tables if they don't exist."""
        conn = self._get_conn()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS notifications (
                sequence INTEGER PRIMARY KEY,
                kind TEXT NOT NULL,
                actor TEXT NOT NULL,
                subject TEXT,
                emitted_at INTEGER NOT NULL,
                payload TEXT NOT NULL,
                created_at TEXT DEFAULT (datetime('now'))
            );
            CREATE INDEX IF NOT EXISTS idx_notifications_kind
                ON notifications(kind);
            CREATE INDEX IF NOT EXISTS idx_notifications_subject
                ON notifications(subject);
        """)
        conn.commit()

    def close(self):
        """Close the connections opened by every thread."""
        with self._lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
            self._shared = None
            self._local = threading.local()

    # =========================================================================
    # WRITE
    # =========================================================================

    def write(self, notification: Notification) -> None:
        """
        Append one sequenced notification.

        Raises:
            JournalError: If the notification is unsequenced or the sequence
                number is already stored.
        """
        entry = notification.to_log_entry()
        if notification.sequence is None:
            raise JournalError("Cannot persist an unsequenced notification", entry)

        conn = self._get_conn()
        with self._lock:
            try:
                conn.execute(
                    """INSERT INTO notifications
                       (sequence, kind, actor, subject, emitted_at, payload)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (
                        notification.sequence,
                        notification.kind.value,
                        notification.actor,
                        getattr(notification, "subject", None),
                        notification.emitted_at,
                        json.dumps(entry),
                    ),
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise JournalError(f"Failed to persist notification: {e}", entry)

    # =========================================================================
    # QUERY
    # =========================================================================

    def query(
        self,
        kind: Optional[Union[NotificationKind, str]] = None,
        subject: Optional[str] = None,
        since: Optional[int] = None,
        limit: Optional[int] = 1000,
    ) -> List[Notification]:
        """Query the journal with optional filters, ordered by sequence."""
        conn = self._get_conn()
        query = "SELECT payload FROM notifications WHERE 1=1"
        params: list = []
        if kind:
            query += " AND kind = ?"
            params.append(NotificationKind(kind).value)
        if subject:
            query += " AND subject = ?"
            params.append(subject)
        if since is not None:
            query += " AND sequence >= ?"
            params.append(since)
        query += " ORDER BY sequence"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock:
            rows = conn.execute(query, params).fetchall()
        return [notification_from_dict(json.loads(r["payload"])) for r in rows]

    def read(self) -> List[Notification]:
        """Every stored notification, in sequence order."""
        return self.query(limit=None)

    def count(self) -> int:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute("SELECT COUNT(*) AS c FROM notifications").fetchone()
        return row["c"]

    def last_sequence(self) -> Optional[int]:
        conn = self._get_conn()
        with self._lock:
            row = conn.execute("SELECT MAX(sequence) AS s FROM notifications").fetchone()
        return row["s"]
