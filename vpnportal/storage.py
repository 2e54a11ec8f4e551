"""
Database module for the VPN portal.

Provides SQLite-based storage for users, issued certificates and
user/system messages. Uses a connection per thread and per-call
transactions.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from .models import CertificateRecord
from .util import parse_datetime, utc_rfc3339


class Storage:
    """SQLite storage shared by all request handlers."""

    def __init__(self, db_path: Union[str, Path]):
        self._db_path = str(db_path)
        # Thread-local storage for connection pooling
        self._local = threading.local()

    def _get_connection(self) -> sqlite3.Connection:
        """
        Get a thread-local database connection.
        Connections are reused within the same thread.
        """
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA foreign_keys=ON;")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    @contextmanager
    def _transaction(self):
        """
        Context manager for database transactions.
        Automatically commits on success, rolls back on failure.
        """
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def init_db(self) -> None:
        """
        Initialize database schema with proper indexes.
        Safe to call multiple times (uses IF NOT EXISTS).
        """
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                session_expires_at TEXT,
                permission_list TEXT NOT NULL DEFAULT '[]'
            );""")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS certificates (
                common_name TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                display_name TEXT NOT NULL,
                valid_from TEXT NOT NULL,
                valid_to TEXT NOT NULL,
                client_id TEXT
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_certificates_user
            ON certificates(user_id);""")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS user_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                date_time TEXT NOT NULL
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_user_messages_user
            ON user_messages(user_id);""")

            conn.execute("""
            CREATE TABLE IF NOT EXISTS system_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                date_time TEXT NOT NULL
            );""")

    # ============================================================
    # Users and sessions
    # ============================================================

    def set_user_session(
        self,
        user_id: str,
        session_expires_at: datetime,
        permission_list: Iterable[str] = ()
    ) -> None:
        """Record (or replace) the session of a portal-managed user."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO users(user_id, session_expires_at, permission_list) VALUES(?,?,?) "
                "ON CONFLICT(user_id) DO UPDATE SET "
                "session_expires_at=excluded.session_expires_at, permission_list=excluded.permission_list",
                (user_id, utc_rfc3339(session_expires_at), json.dumps(sorted(set(permission_list))))
            )

    def get_session_expires_at(self, user_id: str) -> Optional[datetime]:
        """Session expiry of a user, or None when nothing is recorded."""
        conn = self._get_connection()
        cur = conn.execute("SELECT session_expires_at FROM users WHERE user_id=?", (user_id,))
        row = cur.fetchone()
        if row is None or row['session_expires_at'] is None:
            return None
        return parse_datetime(row['session_expires_at'])

    def get_permission_list(self, user_id: str) -> FrozenSet[str]:
        """Permissions of a user; empty for unknown users."""
        conn = self._get_connection()
        cur = conn.execute("SELECT permission_list FROM users WHERE user_id=?", (user_id,))
        row = cur.fetchone()
        if row is None:
            return frozenset()
        return frozenset(json.loads(row['permission_list']))

    # ============================================================
    # Certificates
    # ============================================================

    def add_certificate(
        self,
        user_id: str,
        common_name: str,
        display_name: str,
        valid_from: datetime,
        valid_to: datetime,
        client_id: Optional[str]
    ) -> None:
        """
        Store a newly issued certificate.
        Raises sqlite3.IntegrityError if the common name is already taken.
        """
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO certificates(common_name, user_id, display_name, valid_from, valid_to, client_id) "
                "VALUES(?,?,?,?,?,?)",
                (common_name, user_id, display_name, utc_rfc3339(valid_from), utc_rfc3339(valid_to), client_id)
            )

    def get_user_certificate_info(self, common_name: str) -> Optional[CertificateRecord]:
        """Look up certificate metadata by common name, None if unknown."""
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT common_name, user_id, client_id, valid_from, valid_to "
            "FROM certificates WHERE common_name=?",
            (common_name,)
        )
        row = cur.fetchone()
        if row is None:
            return None
        return CertificateRecord(
            common_name=row['common_name'],
            user_id=row['user_id'],
            client_id=row['client_id'] or "",
            valid_from=parse_datetime(row['valid_from']),
            valid_to=parse_datetime(row['valid_to']),
        )

    def get_certificates(self, user_id: str) -> List[CertificateRecord]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT common_name FROM certificates WHERE user_id=? ORDER BY valid_from ASC",
            (user_id,)
        )
        return [self.get_user_certificate_info(row['common_name']) for row in cur.fetchall()]

    # ============================================================
    # Messages
    # ============================================================

    def add_user_message(self, user_id: str, message_type: str, message: str,
                         date_time: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO user_messages(user_id, type, message, date_time) VALUES(?,?,?,?)",
                (user_id, message_type, message, utc_rfc3339(date_time))
            )

    def user_messages(self, user_id: str) -> List[Dict[str, Any]]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT id, type, message, date_time FROM user_messages WHERE user_id=? ORDER BY id ASC",
            (user_id,)
        )
        return [dict(row) for row in cur.fetchall()]

    def add_system_message(self, message_type: str, message: str,
                           date_time: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO system_messages(type, message, date_time) VALUES(?,?,?)",
                (message_type, message, utc_rfc3339(date_time))
            )

    def system_messages(self, message_type: str) -> List[Dict[str, Any]]:
        conn = self._get_connection()
        cur = conn.execute(
            "SELECT id, type, message, date_time FROM system_messages WHERE type=? ORDER BY id ASC",
            (message_type,)
        )
        return [dict(row) for row in cur.fetchall()]

    # ============================================================
    # Metrics and Health
    # ============================================================

    def get_db_stats(self) -> Dict[str, int]:
        """Get database statistics for monitoring."""
        conn = self._get_connection()
        stats = {}
        for table in ['users', 'certificates', 'user_messages', 'system_messages']:
            cur = conn.execute(f"SELECT COUNT(*) as cnt FROM {table}")
            stats[f"{table}_count"] = cur.fetchone()['cnt']
        return stats

    # ============================================================
    # Test Support: Database Reset
    # ============================================================

    def reset_db(self) -> None:
        """
        Reset the database for test isolation.
        Clears all tables but preserves schema.
        """
        with self._transaction() as conn:
            conn.execute("DELETE FROM users")
            conn.execute("DELETE FROM certificates")
            conn.execute("DELETE FROM user_messages")
            conn.execute("DELETE FROM system_messages")

    def close_connection(self) -> None:
        """Close the thread-local connection (for cleanup)."""
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            conn.close()
            self._local.conn = None
