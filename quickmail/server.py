"""HTTP API serving the inbox cache, message details and sending."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import re
from collections.abc import Callable
from datetime import datetime, timezone

from aiohttp import web

from quickmail.imapfetch import fetch_recent_emails
from quickmail.mailer import load_smtp_settings, send_email
from quickmail.models import EmailDetail, EmailRequest, parse_email_request
from quickmail.store import BODY_PLACEHOLDER, EmailStore

log = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
BATCH_SIZE = 15
LOADING_BODY = "Loading email content..."

Fetcher = Callable[[int], list[EmailDetail]]
Sender = Callable[[EmailRequest], None]

_INTEGER = re.compile(r"[+-]?[0-9]+")
_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


def _parse_limit(raw: str | None) -> int:
    limit = int(raw) if raw is not None and _INTEGER.fullmatch(raw) else DEFAULT_LIMIT
    return min(limit, DEFAULT_LIMIT)


@web.middleware
async def _cors(request: web.Request, handler):
    if request.method == "OPTIONS":
        return web.Response(headers=_CORS_HEADERS)
    response = await handler(request)
    response.headers.update(_CORS_HEADERS)
    return response


def create_app(store: EmailStore, fetcher: Fetcher, sender: Sender) -> web.Application:
    """Build the web application around a store, an IMAP fetcher and a sender.

    The sender raises ValueError for a request it cannot accept and any
    other exception when delivery fails.
    """
    background: set[asyncio.Task[None]] = set()

    async def cache_in_background(emails: list[EmailDetail]) -> None:
        try:
            store.cache_emails(emails)
        except Exception as exc:  # the response has already been served
            log.warning("cache update failed: %s", exc)

    def cached(limit: int):
        try:
            return store.cached_emails(limit)
        except Exception as exc:
            log.warning("cache read failed: %s", exc)
            return []

    async def list_emails(request: web.Request) -> web.Response:
        limit = _parse_limit(request.query.get("limit"))
        force_refresh = request.query.get("refresh") == "true"

        if not force_refresh:
            items = cached(limit)
            if items:
                return web.json_response([item.to_dict() for item in items])

        try:
            emails = await asyncio.to_thread(fetcher, BATCH_SIZE)
        except Exception as exc:
            items = cached(limit)
            if items:
                return web.json_response([item.to_dict() for item in items])
            return web.Response(status=500, text=f"Failed to fetch emails: {exc}")

        task = asyncio.create_task(cache_in_background(list(emails)))
        background.add(task)
        task.add_done_callback(background.discard)
        return web.json_response([email.to_list_item().to_dict() for email in emails])

    async def new_emails(request: web.Request) -> web.Response:
        return web.json_response([])

    async def get_email(request: web.Request) -> web.Response:
        message_id = request.match_info["id"]
        try:
            email = store.email_detail(message_id)
        except Exception as exc:
            return web.Response(status=500, text=f"Database error: {exc!r}")
        if email is None:
            return web.Response(status=404, text="Email not found")
        if email.body == BODY_PLACEHOLDER or not email.body:
            email = dataclasses.replace(email, body=LOADING_BODY)
        return web.json_response(email.to_dict())

    async def send(request: web.Request) -> web.Response:
        try:
            outgoing = parse_email_request(await request.read())
        except ValueError as exc:
            return web.Response(status=400, text=str(exc))
        try:
            await asyncio.to_thread(sender, outgoing)
        except ValueError as exc:
            return web.Response(status=400, text=str(exc))
        except Exception as exc:
            return web.Response(status=500, text=f"Email send failed: {exc!r}")
        try:
            store.record_sent(outgoing)
        except Exception as exc:
            log.warning("could not record sent email: %s", exc)
        return web.Response(text="Email sent successfully!")

    async def health(request: web.Request) -> web.Response:
        return web.json_response(
            {
                "status": "ok",
                "database": "healthy" if store.is_healthy() else "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    app = web.Application(middlewares=[_cors])
    app.router.add_get("/emails", list_emails)
    app.router.add_get("/emails/new", new_emails)
    app.router.add_get("/email/{id}", get_email)
    app.router.add_post("/send", send)
    app.router.add_get("/health", health)
    return app


def _env_fetcher(limit: int) -> list[EmailDetail]:
    return fetch_recent_emails(os.environ["IMAP_USER"], os.environ["IMAP_PASS"], limit)


def _env_sender(request: EmailRequest) -> None:
    send_email(load_smtp_settings(), request)


def main(argv: list[str] | None = None) -> None:
    """Run the mail server."""
    from dotenv import load_dotenv

    parser = argparse.ArgumentParser(description="Serve a cached webmail inbox.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3001)
    parser.add_argument(
        "--database", default=None, help="SQLite file (default: $DATABASE_PATH or webmail.db)"
    )
    args = parser.parse_args(argv)

    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    store = EmailStore(args.database or os.environ.get("DATABASE_PATH", "webmail.db"))
    try:
        store.update_schema()
    except Exception as exc:
        log.warning("schema update failed: %s", exc)

    app = create_app(store, _env_fetcher, _env_sender)
    try:
        web.run_app(app, host=args.host, port=args.port)
    finally:
        store.close()