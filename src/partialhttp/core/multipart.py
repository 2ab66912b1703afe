"""Decoding of ``multipart/byteranges`` response bodies (RFC 7233 appendix A)."""

from __future__ import annotations
import re
from dataclasses import dataclass
from email.message import Message
from typing import Dict, Iterator, Tuple

from .model import ParseError

MULTIPART_BYTERANGES = "multipart/byteranges"
CRLF = b"\r\n"

_CONTENT_RANGE_RE = re.compile(r"^\s*bytes\s+(\d+)-(\d+)/(\d+|\*)\s*$", re.IGNORECASE)


@dataclass(slots=True)
class Part:
    headers: Dict[str, str]    # lower-cased names
    content: bytes


def parse_media_type(value: str | None) -> Tuple[str, Dict[str, str]]:
    """Split a Content-Type value into ``(type, params)``; ``("", {})`` if absent."""
    if not value or not value.strip():
        return "", {}
    msg = Message()
    msg["Content-Type"] = value
    params = msg.get_params() or []
    return msg.get_content_type(), {k.lower(): v for k, v in params[1:]}


def parse_content_range(value: str) -> Tuple[int, int, int | None]:
    """Return ``(start, end, total)`` from ``bytes start-end/total``."""
    m = _CONTENT_RANGE_RE.match(value)
    if not m:
        raise ParseError(f"Malformed Content-Range: {value!r}")
    start, end = int(m.group(1)), int(m.group(2))
    if end < start:
        raise ParseError(f"Content-Range end precedes start: {value!r}")
    total = None if m.group(3) == "*" else int(m.group(3))
    return start, end, total


def boundary_from(content_type: str | None) -> str:
    typ, params = parse_media_type(content_type)
    if typ != MULTIPART_BYTERANGES:
        raise ParseError(f"Not a {MULTIPART_BYTERANGES} response: {content_type!r}")
    boundary = params.get("boundary")
    if not boundary:
        raise ParseError("multipart/byteranges response has no boundary parameter")
    return boundary


def _parse_headers(block: bytes) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for raw in block.split(CRLF):
        if not raw:
            continue
        name, sep, value = raw.decode("latin-1").partition(":")
        if not sep or not name.strip():
            raise ParseError(f"Malformed part header line: {raw!r}")
        headers[name.strip().lower()] = value.strip()
    return headers


def iter_parts(body: bytes, boundary: str) -> Iterator[Part]:
    """Yield the parts of a multipart body in order.

    Framing problems raise ParseError at the point they are found, so parts
    preceding a truncation are still yielded.
    """
    dash = b"--" + boundary.encode("latin-1")
    delim = CRLF + dash

    if body.startswith(dash):
        pos = len(dash)
    else:
        idx = body.find(delim)
        if idx < 0:
            raise ParseError("Opening multipart boundary not found")
        pos = idx + len(delim)

    while True:
        if body.startswith(b"--", pos):
            return                                  # close delimiter
        # transport padding before the line break
        eol = body.find(CRLF, pos)
        if eol < 0 or body[pos:eol].strip(b" \t"):
            raise ParseError("Truncated multipart body after boundary")
        pos = eol + len(CRLF)

        if body.startswith(CRLF, pos):
            headers: Dict[str, str] = {}
            pos += len(CRLF)
        else:
            hdr_end = body.find(CRLF + CRLF, pos)
            if hdr_end < 0:
                raise ParseError("Truncated multipart part headers")
            headers = _parse_headers(body[pos:hdr_end])
            pos = hdr_end + 2 * len(CRLF)

        end = body.find(delim, pos)
        if end < 0:
            raise ParseError("Truncated multipart part body")
        yield Part(headers, body[pos:end])
        pos = end + len(delim)
