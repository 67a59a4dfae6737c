# quickmail

quickmail is a small webmail backend. It fetches the newest messages from
an IMAP inbox in a single batch (headers and bodies together), keeps them
in a local SQLite cache keyed by IMAP UID, and serves them over a JSON HTTP
API. It can also send plain-text mail through an SMTP relay with STARTTLS
and records what it sent.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Configuration

Settings are read from the environment. A `.env` file in the working
directory is loaded as well when the server starts.

| Variable        | Meaning                                                   |
|-----------------|-----------------------------------------------------------|
| `IMAP_USER`     | account used to read the inbox (on `imap.gmail.com:993`)  |
| `IMAP_PASS`     | password for the IMAP account                             |
| `SMTP_USER`     | account used as sender (on `smtp.gmail.com:587`)          |
| `SMTP_PASS`     | password for the SMTP account                             |
| `DATABASE_PATH` | SQLite cache file, used when `--database` is not given    |

An example `.env`:

```
IMAP_USER=alice@example.com
IMAP_PASS=password
SMTP_USER=alice@example.com
SMTP_PASS=password
```

If `SMTP_USER` or `SMTP_PASS` is missing or empty, sending is refused with
`400 Bad Request` and the text `SMTP credentials not configured`.

## Running the server

```
quickmail
```

Options:

- `--host` (default `127.0.0.1`)
- `--port` (default `3001`)
- `--database PATH`: SQLite file for the cache; otherwise `$DATABASE_PATH`,
  otherwise `webmail.db` in the working directory.

Every response carries permissive CORS headers and `OPTIONS` requests are
answered directly, so a browser page served from another origin can call
the API.

## HTTP API

| Method | Path          | Description |
|--------|---------------|-------------|
| GET    | `/emails`     | List of messages. Served from the cache when it has entries. `?refresh=true` forces a fetch of up to 15 of the newest INBOX messages over IMAP; these are returned and written to the cache in the background. `?limit=N` caps a list served from the cache (default and maximum 50). If the IMAP fetch fails, the cache is served instead; if that is empty too, `500` with `Failed to fetch emails: ...`. |
| GET    | `/emails/new` | Always an empty list. |
| GET    | `/email/{id}` | One cached message with its body. Ids of the form `uid_123` are looked up by IMAP UID, others by message id. `404 Email not found` if unknown. A message cached without a body is returned with the body `Loading email content...`. |
| POST   | `/send`       | Send a message. Body: `{"to": "...", "subject": "...", "body": "..."}`. Malformed JSON, a missing or non-string field, or an invalid address gives `400`; a delivery failure gives `500`. On success the message is logged in the cache database and the reply is `Email sent successfully!`. |
| GET    | `/health`     | `{"status": "ok", "database": "healthy" or "unhealthy", "timestamp": ...}` |

A list entry has the fields `id`, `from`, `subject`, `date`, `is_seen` and
`is_recent`; a single message adds `body`. Dates are formatted as
`YYYY-MM-DD HH:MM:SS` (for cached entries, the time they were cached, in
UTC). A fetched message is "recent" when it arrived less than 24 hours
before the fetch. From the fetched headers, `From` is cut to 50 characters
and `Subject` to 80; a UTF-8 base64 encoded subject is decoded.

Example:

```
curl -X POST http://127.0.0.1:3001/send \
     -H "Content-Type: application/json" \
     -d '{"to": "bob@example.com", "subject": "Hello", "body": "Hi Bob"}'
```

## Using it as a library

- `quickmail.models`: the records `EmailRequest`, `EmailListItem` and
  `EmailDetail` (with `to_dict()` and `to_list_item()`), and
  `parse_email_request`, which accepts a mapping or JSON text and raises
  `ValueError` on bad input.
- `quickmail.textextract` turns raw message bodies into readable text:
  `extract_body_content`, `decode_email_content`, `decode_quoted_printable`,
  `extract_html_content`, `extract_plain_text` and
  `decode_mime_header_simple`. Output is cut at about 2000 bytes with a
  `[Content truncated]` marker.
- `quickmail.imapfetch`: `fetch_recent_emails(user, password, limit, host,
  port)` returns up to 15 of the newest INBOX messages as `EmailDetail`
  records, newest first; `parse_fetch_response` and `message_to_detail` are
  the steps it uses on an `imaplib` FETCH response.
- `quickmail.store.EmailStore` is the SQLite cache: `cached_emails`,
  `email_detail`, `cache_emails`, `record_sent`, `is_healthy`,
  `update_schema` and `close`. `parse_uid_id` reads the UID out of a
  `uid_<n>` id.
- `quickmail.mailer`: `load_smtp_settings` builds `SmtpSettings` from the
  environment, `build_message` builds the `EmailMessage`, `send_email`
  delivers it.
- `quickmail.views` renders HTML fragments: `render_email_list` (entries
  given as mappings with `from`, `subject` and `body`, bodies cut to 200
  characters), `render_status`, `render_error`, and `html_escape`.
- `quickmail.server.create_app(store, fetcher, sender)` builds the aiohttp
  application; the fetcher takes a batch size and returns `EmailDetail`
  records, the sender takes an `EmailRequest`. This makes it easy to run
  the API with substitutes in tests.

## What it does not do

- There is no browser interface. `quickmail.views` only produces HTML
  fragments; no page, script or static files are served.
- Message bodies are never fetched one by one. A message cached without a
  body stays at `Loading email content...` until a refresh caches it again.
- `/emails/new` does not look for new mail; it always returns an empty list.
- Only the INBOX folder is read, and only plain-text mail is sent, without
  attachments.