"""Recover headers and decoded body text from Gmail message resources."""

from __future__ import annotations

import base64
import binascii
import logging
import re

from .models import MessageHeaders

logger = logging.getLogger(__name__)

_FROM_RE = re.compile(r"^(.*?)\s*<([^>]+)>$")


def parse_from_header(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      "HDFC Bank <alerts@hdfcbank.net>" -> ("HDFC Bank", "alerts@hdfcbank.net")
      "<alerts@hdfcbank.net>"           -> ("", "alerts@hdfcbank.net")
      "alerts@hdfcbank.net"             -> ("", "alerts@hdfcbank.net")
    """
    if not from_value:
        return ("", "")
    m = _FROM_RE.match(from_value.strip())
    if m:
        name = m.group(1).strip().strip('"').strip("'")
        return (name, m.group(2).strip())
    email = from_value.strip().strip("<>")
    return ("", email)


def extract_headers(message: dict) -> MessageHeaders:
    """Return subject, sender and Date header of a ``format=full`` message."""
    headers: dict[str, str] = {}
    for h in (message.get("payload") or {}).get("headers", []):
        name = (h.get("name") or "").lower()
        if name and name not in headers:
            headers[name] = h.get("value") or ""

    return MessageHeaders(
        subject=headers.get("subject", ""),
        sender=headers.get("from", ""),
        date_header=headers.get("date", ""),
    )


def decode_part_data(data: str) -> str:
    """Decode a base64url ``body.data`` value, tolerating missing padding."""
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _walk_parts(part: dict, out: list[str]) -> None:
    data = (part.get("body") or {}).get("data")
    if data:
        try:
            out.append(decode_part_data(data))
        except (binascii.Error, ValueError) as exc:
            logger.debug("Skipping undecodable part %s: %s", part.get("partId", "?"), exc)

    for sub in part.get("parts") or []:
        _walk_parts(sub, out)


def extract_body(message: dict) -> str:
    """Concatenate every decodable text part of the message, newline-terminated."""
    payload = message.get("payload")
    if not payload:
        return ""
    texts: list[str] = []
    _walk_parts(payload, texts)
    return "".join(text + "\n" for text in texts)


def authoritative_timestamp(message: dict) -> int | None:
    """Gmail's ``internalDate`` (epoch milliseconds), or None if absent."""
    raw = message.get("internalDate")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed internalDate %r on %s", raw, message.get("id"))
        return None
