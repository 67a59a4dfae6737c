import smtplib
from unittest import mock

import pytest

from quickmail.mailer import SmtpSettings, build_message, load_smtp_settings, send_email
from quickmail.models import EmailRequest

REQUEST = EmailRequest(to="bob@example.com", subject="Hello", body="Body text")


@pytest.mark.parametrize(
    "environ",
    [{}, {"SMTP_USER": "user@example.com"}, {"SMTP_USER": "", "SMTP_PASS": "password"}],
)
def test_missing_credentials(environ):
    with pytest.raises(ValueError, match="SMTP credentials not configured"):
        load_smtp_settings(environ)


def test_load_settings_defaults():
    settings = load_smtp_settings({"SMTP_USER": "user@example.com", "SMTP_PASS": "password"})
    assert settings.user == "user@example.com"
    assert settings.password == "password"
    assert settings.host == "smtp.gmail.com"
    assert settings.port == 587


def test_build_message_headers():
    message = build_message("user@example.com", REQUEST)
    assert message["From"] == "user@example.com"
    assert message["To"] == "bob@example.com"
    assert message["Subject"] == "Hello"
    assert message.get_content().strip() == "Body text"


@pytest.mark.parametrize("address", ["", "not-an-address", "@example.com"])
def test_build_message_rejects_bad_recipient(address):
    request = EmailRequest(to=address, subject="s", body="b")
    with pytest.raises(ValueError):
        build_message("user@example.com", request)


def test_send_email_uses_starttls_and_login():
    password = "password"
    settings = SmtpSettings(user="user@example.com", password=password)
    with mock.patch("quickmail.mailer.smtplib.SMTP") as smtp_class:
        smtp = smtp_class.return_value.__enter__.return_value
        send_email(settings, REQUEST)
    smtp_class.assert_called_once_with("smtp.gmail.com", 587)
    smtp.starttls.assert_called_once()
    smtp.login.assert_called_once_with("user@example.com", password)
    assert smtp.send_message.call_count == 1
    sent = smtp.send_message.call_args[0][0]
    expected = build_message("user@example.com", REQUEST)
    assert expected["From"] == "user@example.com"
    assert expected["To"] == "bob@example.com"
    assert expected["Subject"] == "Hello"
    assert expected.get_content().strip() == "Body text"
    assert sent["From"] == expected["From"]
    assert sent["To"] == expected["To"]
    assert sent["Subject"] == expected["Subject"]
    assert sent.get_content() == expected.get_content()


def test_send_email_propagates_auth_failure():
    password = "password"
    settings = SmtpSettings(user="user@example.com", password=password)
    with mock.patch("quickmail.mailer.smtplib.SMTP") as smtp_class:
        smtp = smtp_class.return_value.__enter__.return_value
        smtp.login.side_effect = smtplib.SMTPAuthenticationError(535, b"denied")
        with pytest.raises(smtplib.SMTPAuthenticationError):
            send_email(settings, REQUEST)
    smtp.send_message.assert_not_called()