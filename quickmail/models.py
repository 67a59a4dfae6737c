"""Data records exchanged between the mail store, the IMAP fetcher and the HTTP API."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_REQUEST_FIELDS = ("to", "subject", "body")


@dataclass(frozen=True)
class EmailRequest:
    """An outgoing message as submitted by a client."""

    to: str
    subject: str
    body: str


@dataclass(frozen=True)
class EmailListItem:
    """A summary row of the inbox listing."""

    id: str
    sender: str
    subject: str
    date: str | None
    is_seen: bool
    is_recent: bool

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON shape served by the API."""
        return {
            "id": self.id,
            "from": self.sender,
            "subject": self.subject,
            "date": self.date,
            "is_seen": self.is_seen,
            "is_recent": self.is_recent,
        }


@dataclass(frozen=True)
class EmailDetail:
    """A full message including its extracted body text."""

    id: str
    sender: str
    subject: str
    body: str
    date: str | None
    is_seen: bool
    is_recent: bool

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON shape served by the API."""
        return {
            "id": self.id,
            "from": self.sender,
            "subject": self.subject,
            "body": self.body,
            "date": self.date,
            "is_seen": self.is_seen,
            "is_recent": self.is_recent,
        }

    def to_list_item(self) -> EmailListItem:
        """Drop the body, keeping the listing fields."""
        return EmailListItem(
            id=self.id,
            sender=self.sender,
            subject=self.subject,
            date=self.date,
            is_seen=self.is_seen,
            is_recent=self.is_recent,
        )


def parse_email_request(data: Mapping[str, Any] | str | bytes) -> EmailRequest:
    """Build an EmailRequest from a mapping or a JSON document.

    Raises ValueError when the document is malformed, a field is missing
    or a field is not a string. Unknown keys are ignored.
    """
    if isinstance(data, (str, bytes, bytearray)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ValueError("email request must be a JSON object")

    values = {}
    for name in _REQUEST_FIELDS:
        if name not in data:
            raise ValueError(f"missing field `{name}`")
        value = data[name]
        if not isinstance(value, str):
            raise ValueError(f"field `{name}` must be a string")
        values[name] = value
    return EmailRequest(**values)