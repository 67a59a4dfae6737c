import base64
from datetime import datetime, timedelta, timezone
from unittest import mock

import pytest

from quickmail.imapfetch import (
    FetchedMessage,
    fetch_recent_emails,
    message_to_detail,
    parse_fetch_response,
)

HEADER = b"From: Alice <alice@example.com>\r\nSubject: Plain subject\r\n\r\n"
TEXT = b"This is a readable line of text\r\n"
RECEIVED = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def _response(uid, flags=b"\\Seen"):
    return [
        (
            b"%d (UID %d FLAGS (%s) INTERNALDATE \"01-Jan-2024 10:00:00 +0000\" "
            b"BODY[HEADER.FIELDS (FROM SUBJECT MESSAGE-ID)] {%d}" % (uid, uid, flags, len(HEADER)),
            HEADER,
        ),
        (b" BODY[TEXT] {%d}" % len(TEXT), TEXT),
        b")",
    ]


def test_parse_fetch_response_single():
    [message] = parse_fetch_response(_response(7))
    assert message.uid == 7
    assert message.flags == ["\\Seen"]
    assert message.internal_date == RECEIVED
    assert message.header == HEADER
    assert message.text == TEXT


def test_parse_fetch_response_multiple():
    messages = parse_fetch_response(_response(1) + _response(2, flags=b""))
    assert [m.uid for m in messages] == [1, 2]
    assert messages[1].flags == []


def test_message_to_detail():
    message = parse_fetch_response(_response(7))[0]
    detail = message_to_detail(message, RECEIVED + timedelta(hours=1))
    assert detail.id == "uid_7"
    assert detail.sender == "Alice <alice@example.com>"
    assert detail.subject == "Plain subject"
    assert detail.body == "This is a readable line of text"
    assert detail.date == "2024-01-01 10:00:00"
    assert detail.is_seen is True
    assert detail.is_recent is True


def test_message_to_detail_old_message_not_recent():
    message = parse_fetch_response(_response(7, flags=b""))[0]
    detail = message_to_detail(message, RECEIVED + timedelta(days=2))
    assert detail.is_recent is False
    assert detail.is_seen is False


def test_encoded_subject_is_decoded():
    encoded = base64.b64encode("Grüße".encode()).decode()
    header = f"Subject: =?UTF-8?B?{encoded}?=\r\n".encode()
    detail = message_to_detail(FetchedMessage(uid=1, header=header), RECEIVED)
    assert detail.subject == "Grüße"


def test_empty_message_defaults():
    detail = message_to_detail(FetchedMessage(), RECEIVED)
    assert detail.id == "uid_0"
    assert detail.sender == "Unknown"
    assert detail.subject == "No Subject"
    assert detail.body == "No content available"
    assert detail.date is None
    assert detail.is_recent is False


def _fake_imap(count, data):
    conn = mock.MagicMock()
    conn.select.return_value = ("OK", [str(count).encode()])
    conn.fetch.return_value = ("OK", data)
    return conn


def test_fetch_recent_emails_newest_first():
    conn = _fake_imap(2, _response(1) + _response(2))
    password = "password"
    with mock.patch("quickmail.imapfetch.imaplib.IMAP4_SSL", return_value=conn):
        emails = fetch_recent_emails("user@example.com", password, 15)
    assert [e.id for e in emails] == ["uid_2", "uid_1"]
    assert conn.fetch.call_args[0][0] == "1:2"
    conn.login.assert_called_once_with("user@example.com", password)
    conn.logout.assert_called_once()


def test_fetch_recent_emails_limits_range():
    conn = _fake_imap(40, _response(40))
    password = "password"
    with mock.patch("quickmail.imapfetch.imaplib.IMAP4_SSL", return_value=conn):
        emails = fetch_recent_emails("user@example.com", password, 50)
    assert [e.id for e in emails] == ["uid_40"]
    assert emails[0].subject == "Plain subject"
    assert conn.fetch.call_args[0][0] == "26:40"


def test_fetch_recent_emails_empty_inbox():
    conn = _fake_imap(0, [])
    password = "password"
    with mock.patch("quickmail.imapfetch.imaplib.IMAP4_SSL", return_value=conn):
        assert fetch_recent_emails("user@example.com", password) == []
    conn.fetch.assert_not_called()


def test_login_failure_raises():
    import imaplib

    conn = _fake_imap(1, [])
    conn.login.side_effect = imaplib.IMAP4.error("denied")
    password = "password"
    with mock.patch("quickmail.imapfetch.imaplib.IMAP4_SSL", return_value=conn):
        with pytest.raises(imaplib.IMAP4.error, match="IMAP login failed"):
            fetch_recent_emails("user@example.com", password)