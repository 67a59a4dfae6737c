"""Batch retrieval of recent inbox messages over IMAP."""

from __future__ import annotations

import imaplib
import logging
import re
import ssl
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from quickmail.models import EmailDetail
from quickmail.textextract import decode_mime_header_simple, extract_body_content

log = logging.getLogger(__name__)

MAX_BATCH = 15
NO_CONTENT = "No content available"

_FETCH_ITEMS = (
    "(UID FLAGS INTERNALDATE BODY[HEADER.FIELDS (FROM SUBJECT MESSAGE-ID)] BODY[TEXT])"
)

_START = re.compile(rb"^\s*\d+\s+\(")
_UID = re.compile(rb"\bUID\s+(\d+)")
_FLAGS = re.compile(rb"\bFLAGS\s+\(([^)]*)\)")
_DATE = re.compile(rb'\bINTERNALDATE\s+"([^"]+)"')
_LITERAL = re.compile(rb"(BODY\[[^\]]*\])\s*\{\d+\}\s*$", re.IGNORECASE)
_DATE_FIELDS = re.compile(
    r"\s*(\d{1,2})-([A-Za-z]{3})-(\d{4}) (\d{2}):(\d{2}):(\d{2}) ([+-])(\d{2})(\d{2})"
)
_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}


@dataclass
class FetchedMessage:
    """The parts of one FETCH response that the inbox needs."""

    uid: int | None = None
    flags: list[str] = field(default_factory=list)
    internal_date: datetime | None = None
    header: bytes | None = None
    text: bytes | None = None


def _parse_internal_date(value: str) -> datetime | None:
    match = _DATE_FIELDS.fullmatch(value)
    if match is None:
        return None
    day, month, year, hour, minute, second, sign, off_h, off_m = match.groups()
    month_number = _MONTHS.get(month.lower())
    if month_number is None:
        return None
    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == "-":
        offset = -offset
    try:
        return datetime(
            int(year), month_number, int(day), int(hour), int(minute), int(second),
            tzinfo=timezone(offset),
        )
    except ValueError:
        return None


def _absorb(message: FetchedMessage, chunk: bytes) -> None:
    if (uid := _UID.search(chunk)) is not None:
        message.uid = int(uid.group(1))
    if (flags := _FLAGS.search(chunk)) is not None:
        message.flags = flags.group(1).decode("ascii", "replace").split()
    if (date := _DATE.search(chunk)) is not None:
        message.internal_date = _parse_internal_date(date.group(1).decode("ascii", "replace"))


def parse_fetch_response(data: Iterable[object]) -> list[FetchedMessage]:
    """Group the pieces of an imaplib FETCH response into messages."""
    messages: list[FetchedMessage] = []
    current: FetchedMessage | None = None
    for item in data:
        if isinstance(item, tuple):
            prefix, literal = bytes(item[0]), bytes(item[1])
        elif isinstance(item, (bytes, bytearray)):
            prefix, literal = bytes(item), None
        else:
            continue
        if current is None or _START.match(prefix):
            current = FetchedMessage()
            messages.append(current)
        _absorb(current, prefix)
        if literal is None:
            continue
        key = _LITERAL.search(prefix)
        if key is None:
            continue
        name = key.group(1).upper()
        if b"HEADER" in name:
            current.header = literal
        elif name == b"BODY[TEXT]":
            current.text = literal
    return messages


def _header_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]


def message_to_detail(message: FetchedMessage, now: datetime) -> EmailDetail:
    """Turn a fetched message into the detail record served to clients."""
    uid = message.uid or 0
    sender = "Unknown"
    subject = "No Subject"
    if message.header is not None:
        for line in _header_lines(message.header.decode("utf-8", "replace"))[:10]:
            lowered = line.lower()
            if lowered.startswith("from:") and sender == "Unknown":
                sender = line[5:].strip()[:50]
            elif lowered.startswith("subject:") and subject == "No Subject":
                subject = decode_mime_header_simple(line[8:].strip())[:80]

    body = extract_body_content(message.text) if message.text is not None else NO_CONTENT
    received = message.internal_date
    return EmailDetail(
        id=f"uid_{uid}",
        sender=sender,
        subject=subject,
        body=body,
        date=received.strftime("%Y-%m-%d %H:%M:%S") if received else None,
        is_seen="\\Seen" in message.flags,
        is_recent=(
            received is not None and int((now - received).total_seconds() / 3600) < 24
        ),
    )


def fetch_recent_emails(
    user: str,
    password: str,
    limit: int = MAX_BATCH,
    host: str = "imap.gmail.com",
    port: int = 993,
) -> list[EmailDetail]:
    """Fetch headers and bodies of the latest inbox messages, newest first."""
    started = time.monotonic()
    conn = imaplib.IMAP4_SSL(host, port, ssl_context=ssl.create_default_context())
    try:
        try:
            conn.login(user, password)
        except imaplib.IMAP4.error as exc:
            raise imaplib.IMAP4.error(f"IMAP login failed: {exc}") from exc
        status, data = conn.select("INBOX")
        if status != "OK":
            raise imaplib.IMAP4.error(f"cannot select INBOX: {data!r}")
        count = int(data[0])
        if count == 0:
            return []

        fetch_limit = min(limit, MAX_BATCH)
        start = count - fetch_limit + 1 if count > fetch_limit else 1
        fetch_range = f"{start}:{count}"
        log.info("batch fetching range %s (%d emails)", fetch_range, fetch_limit)
        status, data = conn.fetch(fetch_range, _FETCH_ITEMS)
        if status != "OK":
            raise imaplib.IMAP4.error(f"fetch failed: {data!r}")

        now = datetime.now(timezone.utc)
        emails = [
            message_to_detail(message, now)
            for message in parse_fetch_response(data)[:fetch_limit]
        ]
        emails.reverse()
        log.info("fetched %d emails in %.2fs", len(emails), time.monotonic() - started)
        return emails
    finally:
        try:
            conn.logout()
        except (imaplib.IMAP4.error, OSError):
            pass