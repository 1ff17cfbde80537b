"""Opaque keyset cursors.

A cursor names a position in the total order ``(sort_value DESC, id DESC)``
of one sort domain. Two wire formats exist; a document class commits to one
of them through ``Settings.cursor_codec``.
"""

from __future__ import annotations

import base64
import binascii
import enum
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

logger = logging.getLogger(__name__)

MAX_TIEBREAK_ID = 2**63 - 1

_DOMAIN_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DECIMAL_ID = re.compile(r"[0-9]{1,%d}" % len(str(MAX_TIEBREAK_ID)))

# Longer tokens are rejected before any parsing
MAX_TOKEN_LENGTH = 512


class InvalidCursorPolicy(str, enum.Enum):
    """What a paginator does with a cursor it cannot use."""

    FALLBACK = "fallback"  # restart from the first page
    REJECT = "reject"  # raise InvalidCursor


@dataclass(frozen=True)
class Cursor:
    """Decoded cursor position."""

    sort_value: datetime
    tiebreak_id: int
    domain: str | None = None


class CursorCodec(Protocol):
    name: str

    def encode(self, sort_value: datetime, tiebreak_id: int, domain: str | None = None) -> str:
        ...

    def decode(self, token: Any) -> Cursor | None:
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_encodable(sort_value: Any, tiebreak_id: Any, domain: str | None) -> None:
    if not isinstance(sort_value, datetime):
        raise TypeError(f"Cursor sort value must be a datetime, got {type(sort_value).__name__}")
    if isinstance(tiebreak_id, bool) or not isinstance(tiebreak_id, int):
        raise TypeError(f"Cursor tiebreak id must be an int, got {type(tiebreak_id).__name__}")
    if not 0 <= tiebreak_id <= MAX_TIEBREAK_ID:
        raise ValueError(f"Cursor tiebreak id out of range: {tiebreak_id}")
    if domain is not None and not _DOMAIN_NAME.fullmatch(domain):
        raise ValueError(f"Invalid sort domain name: {domain!r}")


def _parse_timestamp(text: str) -> datetime | None:
    try:
        return _as_utc(datetime.fromisoformat(text))
    except (ValueError, OverflowError):
        return None


def _parse_id(text: str) -> int | None:
    if not _DECIMAL_ID.fullmatch(text):
        return None
    value = int(text)
    return value if value <= MAX_TIEBREAK_ID else None


class DelimitedCursorCodec:
    """``[<domain>@]<iso-8601 timestamp><separator><id>``.

    ISO timestamps contain colons, so the id is split off at the last
    separator.
    """

    name = "delimited"

    def __init__(self, separator: str = ":") -> None:
        if not separator or separator == "@" or separator.isdigit():
            raise ValueError(f"Unusable cursor separator: {separator!r}")
        self.separator = separator

    def encode(self, sort_value: datetime, tiebreak_id: int, domain: str | None = None) -> str:
        _check_encodable(sort_value, tiebreak_id, domain)
        stamp = _as_utc(sort_value).isoformat(timespec="microseconds")
        body = f"{stamp}{self.separator}{tiebreak_id}"
        return f"{domain}@{body}" if domain else body

    def decode(self, token: Any) -> Cursor | None:
        if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
            return None

        domain = None
        body = token
        if "@" in token:
            domain, _, body = token.partition("@")
            if not _DOMAIN_NAME.fullmatch(domain):
                return None

        stamp, sep, id_text = body.rpartition(self.separator)
        if not sep or not stamp:
            return None

        sort_value = _parse_timestamp(stamp)
        tiebreak_id = _parse_id(id_text)
        if sort_value is None or tiebreak_id is None:
            return None
        return Cursor(sort_value=sort_value, tiebreak_id=tiebreak_id, domain=domain)


class Base64JsonCursorCodec:
    """URL-safe base64 of ``{"d": domain, "t": timestamp, "i": id}``."""

    name = "base64"

    def encode(self, sort_value: datetime, tiebreak_id: int, domain: str | None = None) -> str:
        _check_encodable(sort_value, tiebreak_id, domain)
        payload = {
            "d": domain,
            "t": _as_utc(sort_value).isoformat(timespec="microseconds"),
            "i": tiebreak_id,
        }
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    def decode(self, token: Any) -> Cursor | None:
        if not isinstance(token, str) or not token or len(token) > MAX_TOKEN_LENGTH:
            return None
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii"))
            payload = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError, RecursionError):
            return None

        if not isinstance(payload, dict):
            return None
        domain = payload.get("d")
        stamp = payload.get("t")
        tiebreak_id = payload.get("i")
        if domain is not None and not (isinstance(domain, str) and _DOMAIN_NAME.fullmatch(domain)):
            return None
        if not isinstance(stamp, str):
            return None
        if isinstance(tiebreak_id, bool) or not isinstance(tiebreak_id, int):
            return None
        if not 0 <= tiebreak_id <= MAX_TIEBREAK_ID:
            return None

        sort_value = _parse_timestamp(stamp)
        if sort_value is None:
            return None
        return Cursor(sort_value=sort_value, tiebreak_id=tiebreak_id, domain=domain)


_codecs: dict[str, CursorCodec] = {
    DelimitedCursorCodec.name: DelimitedCursorCodec(),
    Base64JsonCursorCodec.name: Base64JsonCursorCodec(),
}


def get_codec(codec: str | CursorCodec) -> CursorCodec:
    """Resolve a codec by name, or pass a codec instance through."""
    if not isinstance(codec, str):
        return codec
    try:
        return _codecs[codec]
    except KeyError:
        raise ValueError(
            f"Unknown cursor codec '{codec}'. Expected one of: {', '.join(sorted(_codecs))}"
        )
