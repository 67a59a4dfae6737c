"""SQLite-backed cache of fetched messages and a log of sent mail."""

from __future__ import annotations

import os
import re
import sqlite3
from collections.abc import Iterable

from quickmail.models import EmailDetail, EmailListItem, EmailRequest

UID_PREFIX = "uid_"
NO_SUBJECT = "No Subject"
BODY_PLACEHOLDER = "Click to load content..."
UNKNOWN_ID = "unknown"

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INTEGER = re.compile(r"[+-]?[0-9]+")

_CREATE_EMAILS = """
CREATE TABLE IF NOT EXISTS emails (
    message_id TEXT PRIMARY KEY,
    from_address TEXT,
    to_address TEXT,
    subject TEXT,
    body TEXT,
    created_at TEXT,
    fetched_at TEXT,
    is_seen INTEGER,
    is_recent INTEGER,
    body_preview TEXT
)
"""

_CREATE_SENT = """
CREATE TABLE IF NOT EXISTS sent_emails (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    to_address TEXT,
    subject TEXT,
    body TEXT,
    sent_at TEXT DEFAULT (datetime('now'))
)
"""

_UPSERT = """
INSERT INTO emails (message_id, from_address, to_address, subject, body, created_at,
                    fetched_at, is_seen, is_recent, imap_uid, body_preview)
VALUES (:id, :sender, '', :subject, :body, datetime('now'), datetime('now'),
        :is_seen, :is_recent, :uid, substr(:body, 1, 200))
ON CONFLICT (message_id) DO UPDATE SET
    body = excluded.body,
    fetched_at = datetime('now'),
    is_seen = excluded.is_seen,
    is_recent = excluded.is_recent,
    imap_uid = excluded.imap_uid,
    body_preview = excluded.body_preview
"""

_DETAIL_COLUMNS = (
    "message_id, from_address, subject, body, created_at, is_seen, is_recent, imap_uid"
)


def parse_uid_id(email_id: str) -> int | None:
    """Return the IMAP UID held in an id of the form ``uid_<n>``, or None."""
    if not email_id.startswith(UID_PREFIX):
        return None
    digits = email_id[len(UID_PREFIX):]
    if not _INTEGER.fullmatch(digits):
        return None
    value = int(digits)
    if not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


def _flag(value: object, default: bool) -> bool:
    return default if value is None else bool(value)


def _row_id(row: sqlite3.Row) -> str:
    uid = row["imap_uid"]
    if uid is not None:
        return f"{UID_PREFIX}{uid}"
    return row["message_id"] or UNKNOWN_ID


class EmailStore:
    """Message cache stored in an SQLite database file."""

    def __init__(self, path: str | os.PathLike[str] = ":memory:") -> None:
        self._conn = sqlite3.connect(os.fspath(path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute(_CREATE_EMAILS)
            self._conn.execute(_CREATE_SENT)
        self.update_schema()

    def update_schema(self) -> None:
        """Add the UID column and its index when they are missing."""
        columns = {row["name"] for row in self._conn.execute("PRAGMA table_info(emails)")}
        with self._conn:
            if "imap_uid" not in columns:
                self._conn.execute("ALTER TABLE emails ADD COLUMN imap_uid INTEGER")
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_emails_imap_uid ON emails(imap_uid)"
            )

    def cached_emails(self, limit: int) -> list[EmailListItem]:
        """Return up to ``limit`` cached messages, newest first."""
        if limit <= 0:
            return []
        rows = self._conn.execute(
            "SELECT message_id, from_address, subject, created_at, is_seen, is_recent, imap_uid"
            " FROM emails ORDER BY created_at IS NULL, created_at DESC, rowid ASC LIMIT ?",
            (limit,),
        )
        return [
            EmailListItem(
                id=_row_id(row),
                sender=row["from_address"] or "",
                subject=row["subject"] if row["subject"] is not None else NO_SUBJECT,
                date=row["created_at"],
                is_seen=_flag(row["is_seen"], True),
                is_recent=_flag(row["is_recent"], False),
            )
            for row in rows
        ]

    def email_detail(self, message_id: str) -> EmailDetail | None:
        """Look a message up by ``uid_<n>`` id or by message id."""
        if message_id.startswith(UID_PREFIX):
            uid = parse_uid_id(message_id)
            if uid is None:
                return None
            row = self._conn.execute(
                f"SELECT {_DETAIL_COLUMNS} FROM emails WHERE imap_uid = ?", (uid,)
            ).fetchone()
        else:
            row = self._conn.execute(
                f"SELECT {_DETAIL_COLUMNS} FROM emails WHERE message_id = ?", (message_id,)
            ).fetchone()
        if row is None:
            return None
        return EmailDetail(
            id=_row_id(row),
            sender=row["from_address"] or "",
            subject=row["subject"] if row["subject"] is not None else NO_SUBJECT,
            body=row["body"] if row["body"] is not None else BODY_PLACEHOLDER,
            date=row["created_at"],
            is_seen=_flag(row["is_seen"], True),
            is_recent=_flag(row["is_recent"], False),
        )

    def cache_emails(self, emails: Iterable[EmailDetail]) -> None:
        """Insert messages, refreshing body and flags of those already cached."""
        with self._conn:
            for email in emails:
                self._conn.execute(
                    _UPSERT,
                    {
                        "id": email.id,
                        "sender": email.sender,
                        "subject": email.subject,
                        "body": email.body,
                        "is_seen": email.is_seen,
                        "is_recent": email.is_recent,
                        "uid": parse_uid_id(email.id),
                    },
                )

    def record_sent(self, request: EmailRequest) -> None:
        """Log a message that was sent successfully."""
        with self._conn:
            self._conn.execute(
                "INSERT INTO sent_emails (to_address, subject, body) VALUES (?, ?, ?)",
                (request.to, request.subject, request.body),
            )

    def is_healthy(self) -> bool:
        """Report whether the database answers a trivial query."""
        try:
            self._conn.execute("SELECT 1").fetchone()
        except sqlite3.Error:
            return False
        return True

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()