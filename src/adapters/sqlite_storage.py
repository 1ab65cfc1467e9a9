"""SQLite storage adapter.

Implements the core DomainStore and WatchlistStore contracts using a simple
SQLite database. Every write is an upsert or a conditional update keyed by
domain, so re-running a sweep is safe at the row level.
"""

from __future__ import annotations

import sqlite3
import uuid
from contextlib import closing, contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Iterator, Optional

from core.errors import PersistError, StoreUnavailableError
from core.models import Domain, User, Watcher, WhoisSnapshot


def _to_db(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _domain_from_row(row: sqlite3.Row) -> Domain:
    return Domain(
        id=int(row["id"]),
        name=row["domain_name"],
        last_checked_at=_from_db(row["last_checked_at"]),
    )


def _snapshot_from_row(row: sqlite3.Row) -> WhoisSnapshot:
    return WhoisSnapshot(
        registrar=row["registrar"],
        expiry_date=_from_db(row["expiry_date"]),
        creation_date=_from_db(row["creation_date"]),
        raw_text=row["raw_text"] or "",
        updated_at=_from_db(row["updated_at"]),
        last_notification_sent_at=_from_db(row["last_notification_sent_at"]),
    )


class SQLiteDomainStore:
    """Thin SQLite wrapper that satisfies the DomainStore and WatchlistStore contracts."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, error_cls: type[Exception] = PersistError) -> Iterator[sqlite3.Connection]:
        try:
            with closing(self._connect()) as conn:
                with conn:
                    yield conn
        except sqlite3.Error as exc:
            raise error_cls(f"database error: {exc}") from exc
        except ValueError as exc:
            # Raised while decoding a stored value inside the block.
            raise error_cls(f"corrupt row: {exc}") from exc

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - users: watchers identified by email
        - domains: one row per tracked domain name, shared by all users
        - user_domains: watch edges between users and domains
        - whois_records: last-known WHOIS snapshot per domain
        """

        with self._transaction(StoreUnavailableError) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            # Domains outlive their watchers so fetch work is deduplicated
            # system-wide and history is kept.
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS domains (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain_name TEXT UNIQUE NOT NULL,
                    last_checked_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_domains (
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    domain_id INTEGER NOT NULL REFERENCES domains(id) ON DELETE CASCADE,
                    created_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (user_id, domain_id)
                )
                """
            )
            # Fields:
            # - domain_id: one snapshot per domain (UNIQUE)
            # - raw_text: full provider output, never NULL
            # - updated_at: time of the last successful fetch
            # - last_notification_sent_at: shared cooldown marker for the domain
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS whois_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    domain_id INTEGER UNIQUE NOT NULL REFERENCES domains(id) ON DELETE CASCADE,
                    registrar TEXT,
                    expiry_date TIMESTAMP,
                    creation_date TIMESTAMP,
                    raw_text TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    last_notification_sent_at TIMESTAMP
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_user_domains_domain ON user_domains(domain_id)")

    # DomainStore

    def list_tracked_domains(self) -> list[Domain]:
        """Return every domain, never-checked first, then oldest check first."""

        with self._transaction(StoreUnavailableError) as conn:
            rows = conn.execute(
                """
                SELECT id, domain_name, last_checked_at
                FROM domains
                ORDER BY last_checked_at IS NOT NULL, last_checked_at ASC, id ASC
                """
            ).fetchall()
            return [_domain_from_row(row) for row in rows]

    def get_snapshot(self, domain_id: int) -> Optional[WhoisSnapshot]:
        with self._transaction() as conn:
            row = conn.execute(
                """
                SELECT registrar, expiry_date, creation_date, raw_text, updated_at,
                       last_notification_sent_at
                FROM whois_records
                WHERE domain_id = ?
                """,
                (domain_id,),
            ).fetchone()
            return _snapshot_from_row(row) if row else None

    def upsert_snapshot(self, domain_id: int, snapshot: WhoisSnapshot) -> WhoisSnapshot:
        """Insert or replace the WHOIS fields of a domain.

        ``last_notification_sent_at`` is only written on insert; afterwards it
        is owned by the cooldown operations below.
        """

        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO whois_records (
                    domain_id,
                    registrar,
                    expiry_date,
                    creation_date,
                    raw_text,
                    updated_at,
                    last_notification_sent_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(domain_id) DO UPDATE SET
                    registrar = excluded.registrar,
                    expiry_date = excluded.expiry_date,
                    creation_date = excluded.creation_date,
                    raw_text = excluded.raw_text,
                    updated_at = excluded.updated_at
                """,
                (
                    domain_id,
                    snapshot.registrar,
                    _to_db(snapshot.expiry_date),
                    _to_db(snapshot.creation_date),
                    snapshot.raw_text,
                    _to_db(snapshot.updated_at),
                    _to_db(snapshot.last_notification_sent_at),
                ),
            )
        return snapshot

    def touch_last_checked(self, domain_id: int, checked_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE domains SET last_checked_at = ? WHERE id = ?",
                (_to_db(checked_at), domain_id),
            )

    def list_watchers(self, domain_id: int) -> list[Watcher]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT u.id, u.email
                FROM user_domains ud
                JOIN users u ON u.id = ud.user_id
                WHERE ud.domain_id = ?
                ORDER BY ud.created_at ASC, u.email ASC
                """,
                (domain_id,),
            ).fetchall()
            return [Watcher(user_id=row["id"], email=row["email"]) for row in rows]

    def set_notification_sent_at(self, domain_id: int, sent_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE whois_records SET last_notification_sent_at = ? WHERE domain_id = ?",
                (_to_db(sent_at), domain_id),
            )

    def claim_notification_slot(
        self, domain_id: int, now: datetime, cooldown: timedelta
    ) -> tuple[bool, Optional[datetime]]:
        """Compare-and-set the cooldown marker to ``now``.

        The UPDATE only matches while the marker still holds the value read
        here and that value is NULL or older than the cooldown window, so two
        racing sweeps cannot both claim the same slot.
        """

        cutoff = _to_db(now - cooldown)
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT last_notification_sent_at FROM whois_records WHERE domain_id = ?",
                (domain_id,),
            ).fetchone()
            if row is None:
                return False, None
            previous_raw = row["last_notification_sent_at"]
            cur = conn.execute(
                """
                UPDATE whois_records
                SET last_notification_sent_at = ?
                WHERE domain_id = ?
                  AND last_notification_sent_at IS ?
                  AND (last_notification_sent_at IS NULL OR last_notification_sent_at <= ?)
                """,
                (_to_db(now), domain_id, previous_raw, cutoff),
            )
            claimed = cur.rowcount == 1
            return claimed, _from_db(previous_raw)

    def release_notification_slot(
        self, domain_id: int, claimed_at: datetime, previous: Optional[datetime]
    ) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                UPDATE whois_records
                SET last_notification_sent_at = ?
                WHERE domain_id = ? AND last_notification_sent_at = ?
                """,
                (_to_db(previous), domain_id, _to_db(claimed_at)),
            )

    # WatchlistStore

    def find_domain_by_name(self, name: str) -> Optional[Domain]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, domain_name, last_checked_at FROM domains WHERE domain_name = ?",
                (name,),
            ).fetchone()
            return _domain_from_row(row) if row else None

    def create_domain(self, name: str) -> Domain:
        """Insert a domain if missing and return it."""

        now = datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO domains (domain_name, created_at) VALUES (?, ?)",
                (name, _to_db(now)),
            )
            row = conn.execute(
                "SELECT id, domain_name, last_checked_at FROM domains WHERE domain_name = ?",
                (name,),
            ).fetchone()
            return _domain_from_row(row)

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, email FROM users WHERE email = ?",
                (email.strip().lower(),),
            ).fetchone()
        return User(id=row["id"], email=row["email"]) if row else None

    def get_or_create_user(self, email: str) -> User:
        normalized = email.strip().lower()
        now = datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO users (id, email, created_at) VALUES (?, ?, ?)",
                (str(uuid.uuid4()), normalized, _to_db(now)),
            )
            row = conn.execute("SELECT id, email FROM users WHERE email = ?", (normalized,)).fetchone()
        return User(id=row["id"], email=row["email"])

    def is_watching(self, user_id: str, domain_id: int) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM user_domains WHERE user_id = ? AND domain_id = ?",
                (user_id, domain_id),
            ).fetchone()
        return row is not None

    def add_watch(self, user_id: str, domain_id: int) -> None:
        now = datetime.now(timezone.utc)
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO user_domains (user_id, domain_id, created_at) VALUES (?, ?, ?)",
                (user_id, domain_id, _to_db(now)),
            )

    def remove_watch(self, user_id: str, domain_id: int) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "DELETE FROM user_domains WHERE user_id = ? AND domain_id = ?",
                (user_id, domain_id),
            )
            return cur.rowcount > 0

    def list_domains_for_user(
        self, user_id: str, limit: int, offset: int
    ) -> list[tuple[Domain, Optional[WhoisSnapshot]]]:
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT d.id, d.domain_name, d.last_checked_at,
                       w.domain_id AS snapshot_domain_id,
                       w.registrar, w.expiry_date, w.creation_date, w.raw_text,
                       w.updated_at, w.last_notification_sent_at
                FROM user_domains ud
                JOIN domains d ON d.id = ud.domain_id
                LEFT JOIN whois_records w ON w.domain_id = d.id
                WHERE ud.user_id = ?
                ORDER BY ud.created_at DESC, d.id DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            ).fetchall()
            return [
                (
                    _domain_from_row(row),
                    _snapshot_from_row(row) if row["snapshot_domain_id"] is not None else None,
                )
                for row in rows
            ]

    def count_domains_for_user(self, user_id: str) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM user_domains WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row["total"])

    def list_domain_overview(self) -> list[dict[str, Any]]:
        """Return one row per tracked domain with its snapshot and watcher emails."""

        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT d.id, d.domain_name, d.last_checked_at,
                       w.registrar, w.expiry_date, w.creation_date, w.updated_at,
                       w.last_notification_sent_at, w.raw_text,
                       (
                           SELECT GROUP_CONCAT(u.email, ', ')
                           FROM user_domains ud
                           JOIN users u ON u.id = ud.user_id
                           WHERE ud.domain_id = d.id
                       ) AS watchers
                FROM domains d
                LEFT JOIN whois_records w ON w.domain_id = d.id
                ORDER BY d.domain_name ASC
                """
            ).fetchall()
        return [dict(row) for row in rows]
