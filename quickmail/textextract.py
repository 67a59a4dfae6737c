"""Turn raw message headers and bodies into short readable text."""

from __future__ import annotations

import base64
import binascii
import re

NO_READABLE_TEXT = "This email contains no readable text content."
ONLY_IMAGES = "This email appears to contain only images or unsupported content."
TRUNCATION_SUFFIX = "...\n\n[Content truncated]"

_MAX_OUTPUT_BYTES = 2000
_MAX_DECODED_BYTES = 3000
_MAX_PLAIN_BYTES = 1500
_MAX_PLAIN_LINES = 100
_READABLE_PUNCTUATION = ".,!?-()[]{}:;\"'"

_UTF8_B_PREFIX = "=?UTF-8?B?"

_QP_PATTERN = re.compile(
    r"=(?:\r\n?|\n|(?P<hex>[0-9A-Fa-f]{2})|(?P<pair>..)|.?)", re.DOTALL
)

_HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&rsquo;", "'"),
    ("&ldquo;", '"'),
    ("&rdquo;", '"'),
    ("&mdash;", "\u2014"),
    ("&ndash;", "\u2013"),
)


def _lines(text: str) -> list[str]:
    """Split on newlines, dropping a trailing carriage return and final empty line."""
    if not text:
        return []
    parts = text.split("\n")
    if parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _truncate(text: str) -> str:
    if _byte_len(text) > _MAX_OUTPUT_BYTES:
        head = text.encode("utf-8")[:_MAX_OUTPUT_BYTES].decode("utf-8", "ignore")
        return head + TRUNCATION_SUFFIX
    return text


def _b64decode_strict(data: str) -> bytes | None:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None


def decode_mime_header_simple(header: str) -> str:
    """Decode the first UTF-8 base64 encoded word of a header, if any.

    Anything else, including other charsets and Q-encoding, is returned unchanged.
    """
    if "=?" not in header:
        return header
    start = header.find(_UTF8_B_PREFIX)
    if start == -1:
        return header
    end = header.find("?=", start)
    if end == -1 or end < start + len(_UTF8_B_PREFIX):
        return header
    decoded = _b64decode_strict(header[start + len(_UTF8_B_PREFIX):end])
    if decoded is None:
        return header
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError:
        return header


def decode_quoted_printable(text: str) -> str:
    """Decode quoted-printable escapes and soft line breaks in a line of text.

    Each escaped byte becomes the character with that code point.
    """

    def replace(match: re.Match[str]) -> str:
        if match.group("hex") is not None:
            return chr(int(match.group("hex"), 16))
        if match.group("pair") is not None:
            return "=" + match.group("pair")
        if match.group(0).startswith("=\r") or match.group(0).startswith("=\n"):
            return ""
        return "="

    return _QP_PATTERN.sub(replace, text)


def decode_email_content(content: str) -> str:
    """Skip the leading header block and decode the body lines that follow.

    MIME boundaries and content-* lines are dropped, as are lines of two
    characters or fewer; decoding stops after about 3000 bytes of output.
    """
    encoding = "7bit"
    in_headers = True
    decoded_lines: list[str] = []

    for line in _lines(content):
        lowered = line.lower()
        if in_headers:
            if not line.strip():
                in_headers = False
            elif lowered.startswith("content-transfer-encoding:"):
                encoding = line.split(":")[1].strip()
            continue

        if line.startswith("--") or lowered.startswith("content-"):
            continue

        kind = encoding.lower()
        if kind == "base64":
            raw = _b64decode_strict(line.strip())
            decoded = line if raw is None else raw.decode("utf-8", "replace")
        elif kind == "quoted-printable":
            decoded = decode_quoted_printable(line)
        else:
            decoded = line

        if decoded.strip() and _byte_len(decoded) > 2:
            decoded_lines.append(decoded)

        if _byte_len("".join(decoded_lines)) > _MAX_DECODED_BYTES:
            break

    return "\n".join(decoded_lines)


def extract_html_content(html: str) -> str:
    """Strip tags, scripts and styles from HTML, keeping paragraph breaks."""
    pieces: list[str] = []
    in_tag = False
    in_script = False
    in_style = False
    tag: list[str] = []

    for char in html:
        if char == "<":
            in_tag = True
            tag.clear()
        elif char == ">" and in_tag:
            in_tag = False
            name = "".join(tag).lower()
            if name.startswith("script"):
                in_script = True
            elif name.startswith("/script"):
                in_script = False
            elif name.startswith("style"):
                in_style = True
            elif name.startswith("/style"):
                in_style = False
            elif name in ("br", "br/"):
                pieces.append("\n")
            elif name == "p" or name.startswith("p "):
                pieces.append("\n\n")
            elif name == "/p":
                pieces.append("\n")
            elif name == "div" or name.startswith("div "):
                pieces.append("\n")
            tag.clear()
        elif in_tag:
            tag.append(char)
        elif not in_script and not in_style:
            pieces.append(char)

    cleaned = "".join(pieces)
    for entity, replacement in _HTML_ENTITIES:
        cleaned = cleaned.replace(entity, replacement)
    cleaned = re.sub(" {2,}", " ", cleaned)
    cleaned = re.sub("\n{3,}", "\n\n", cleaned)

    final_text = cleaned.strip()
    if not final_text:
        return ONLY_IMAGES
    return _truncate(final_text)


def _is_readable(line: str) -> bool:
    readable = sum(
        1
        for char in line
        if char.isalpha() or char.isspace() or char in _READABLE_PUNCTUATION
    )
    return readable / len(line) > 0.6


def extract_plain_text(body: str) -> str:
    """Keep the readable lines among the first hundred lines of a text body."""
    content: list[str] = []
    for line in _lines(body)[:_MAX_PLAIN_LINES]:
        trimmed = line.strip()
        if (
            not trimmed
            or trimmed.startswith("--")
            or "content-" in trimmed.lower()
            or _byte_len(trimmed) < 3
        ):
            continue
        if _is_readable(trimmed):
            content.append(trimmed)
            if _byte_len(" ".join(content)) > _MAX_PLAIN_BYTES:
                break

    if not content:
        return NO_READABLE_TEXT
    return _truncate("\n".join(content))


def extract_body_content(raw_body: bytes) -> str:
    """Decode a raw message body and reduce it to readable text."""
    text = raw_body.decode("utf-8", "replace")
    decoded = decode_email_content(text)
    lowered = decoded.lower()
    if (
        "<html" in lowered
        or "<!doctype" in lowered
        or "<div" in decoded
        or "<p>" in decoded
    ):
        return extract_html_content(decoded)
    return extract_plain_text(decoded)