import json

import pytest

from quickmail.models import (
    EmailDetail,
    EmailListItem,
    EmailRequest,
    parse_email_request,
)


def _detail():
    return EmailDetail(
        id="uid_7",
        sender="alice@example.com",
        subject="Greetings",
        body="Body text here",
        date="2024-01-02 03:04:05",
        is_seen=False,
        is_recent=True,
    )


def test_parse_email_request_from_mapping():
    request = parse_email_request(
        {"to": "bob@example.com", "subject": "Hi", "body": "Hello Bob"}
    )
    assert request == EmailRequest(to="bob@example.com", subject="Hi", body="Hello Bob")


def test_parse_email_request_from_json_ignores_unknown_keys():
    payload = json.dumps(
        {"to": "bob@example.com", "subject": "S", "body": "B", "extra": 1}
    )
    request = parse_email_request(payload)
    assert (request.to, request.subject, request.body) == ("bob@example.com", "S", "B")


@pytest.mark.parametrize("missing", ["to", "subject", "body"])
def test_parse_email_request_missing_field(missing):
    data = {"to": "bob@example.com", "subject": "S", "body": "B"}
    del data[missing]
    with pytest.raises(ValueError):
        parse_email_request(data)


def test_parse_email_request_wrong_type():
    with pytest.raises(ValueError):
        parse_email_request({"to": "bob@example.com", "subject": 3, "body": "B"})


def test_parse_email_request_bad_json():
    with pytest.raises(ValueError):
        parse_email_request("{not json")


def test_parse_email_request_not_object():
    with pytest.raises(ValueError):
        parse_email_request("[1, 2]")


def test_list_item_to_dict_keys_and_values():
    item = EmailListItem(
        id="uid_1",
        sender="carol@example.com",
        subject="Subj",
        date=None,
        is_seen=True,
        is_recent=False,
    )
    result = item.to_dict()
    assert set(result) == {"id", "from", "subject", "date", "is_seen", "is_recent"}
    assert result["from"] == "carol@example.com"
    assert result["date"] is None
    assert result["is_seen"] is True


def test_detail_to_dict_round_trips_through_json():
    detail = _detail()
    restored = json.loads(json.dumps(detail.to_dict()))
    assert restored["body"] == detail.body
    assert restored["from"] == detail.sender
    assert restored["id"] == detail.id
    assert restored["is_recent"] is True


def test_detail_to_list_item_keeps_listing_fields():
    detail = _detail()
    item = detail.to_list_item()
    assert item == EmailListItem(
        id=detail.id,
        sender=detail.sender,
        subject=detail.subject,
        date=detail.date,
        is_seen=detail.is_seen,
        is_recent=detail.is_recent,
    )
    expected = detail.to_dict()
    del expected["body"]
    assert item.to_dict() == expected