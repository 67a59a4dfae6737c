"""Outgoing mail over SMTP with STARTTLS."""

from __future__ import annotations

import os
import smtplib
import ssl
from collections.abc import Mapping
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import parseaddr

from quickmail.models import EmailRequest

DEFAULT_HOST = "smtp.gmail.com"
DEFAULT_PORT = 587


@dataclass(frozen=True)
class SmtpSettings:
    """Account and relay used for sending."""

    user: str
    password: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


def load_smtp_settings(environ: Mapping[str, str] | None = None) -> SmtpSettings:
    """Read SMTP_USER and SMTP_PASS; raise ValueError when either is empty."""
    env = os.environ if environ is None else environ
    user = env.get("SMTP_USER", "")
    secret = env.get("SMTP_PASS", "")
    if not user or not secret:
        raise ValueError("SMTP credentials not configured")
    return SmtpSettings(user=user, password=secret)


def _check_address(address: str) -> str:
    _, parsed = parseaddr(address)
    if not parsed or "@" not in parsed or parsed.startswith("@") or parsed.endswith("@"):
        raise ValueError(f"Email building error: invalid address {address!r}")
    return address


def build_message(sender: str, request: EmailRequest) -> EmailMessage:
    """Build a plain-text message; raise ValueError for an invalid address."""
    message = EmailMessage()
    message["From"] = _check_address(sender)
    message["To"] = _check_address(request.to)
    message["Subject"] = request.subject
    message.set_content(request.body)
    return message


def send_email(settings: SmtpSettings, request: EmailRequest) -> None:
    """Send a message through the configured relay."""
    message = build_message(settings.user, request)
    with smtplib.SMTP(settings.host, settings.port) as smtp:
        smtp.starttls(context=ssl.create_default_context())
        smtp.login(settings.user, settings.password)
        smtp.send_message(message)