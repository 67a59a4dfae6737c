"""HTML fragments for the inbox page and status messages."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

EMPTY_INBOX_HTML = """
            <div class="empty-state">
                <h3>📭 No emails found</h3>
                <p>Your inbox is empty or no emails could be retrieved.</p>
            </div>
        """

_ITEM_TEMPLATE = """
                <li class="email-item">
                    <div class="email-header">
                        <div class="email-from">From: {sender}</div>
                    </div>
                    <div class="email-subject">{subject}</div>
                    <div class="email-body">{body}</div>
                </li>
            """

_BODY_PREVIEW_CHARS = 200


def html_escape(text: str) -> str:
    """Escape the characters that are significant in HTML."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#x27;")
    )


def render_email_list(emails: Iterable[Mapping[str, Any]]) -> str:
    """Render emails, given as mappings with from, subject and body, as list items."""
    items = [
        _ITEM_TEMPLATE.format(
            sender=html_escape(email["from"]),
            subject=html_escape(email["subject"]),
            body=html_escape(email["body"][:_BODY_PREVIEW_CHARS]),
        )
        for email in emails
    ]
    if not items:
        return EMPTY_INBOX_HTML
    return "".join(items)


def render_status(message: str, status_type: str) -> str:
    """Wrap a message in a status box of the given type."""
    return f'<div class="status {status_type}">{message}</div>'


def render_error(message: str) -> str:
    """Render an error status box."""
    return render_status(f"❌ {message}", "error")