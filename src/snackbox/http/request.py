"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read from a client socket into an immutable HTTPRequest.

=============================================================================
WHAT THE PARSER SEES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GET /hello/world?x=1&y=2 HTTP/1.1\r\n      ◄── request line       │
    │   ─┬─ ─────────┬────────── ────┬───                                  │
    │    │           │               └─ version (accepted, not checked)   │
    │    │           └─ raw target, split at the first "?"                │
    │    └─ method (unknown tokens become Method.UNKNOWN)                  │
    │                                                                      │
    │   Host: localhost:8080\r\n                   ◄── headers            │
    │   Content-Length: 5\r\n                                              │
    │   \r\n                                       ◄── terminator         │
    │   hello                                      ◄── body (verbatim)    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The parser is deliberately lenient:

    - Lines may end in "\r\n" or a bare "\n".
    - Header lines without a colon are skipped.
    - Header names and values are trimmed; the name keeps the case the
      client sent; a repeated header replaces the earlier value.
    - Header parsing stops at the first blank line.
    - Everything after the "\r\n\r\n" terminator is the body, byte for byte.

It is strict about exactly two things, both answered with 400 Bad Request:

    - The "\r\n\r\n" terminator must be present.
    - The request line must have at least three space-separated tokens.

=============================================================================
PATH vs QUERY DECODING
=============================================================================

    "/a%20b+c?q=a+b%21"
     ────┬───  ───┬────
         │        └── query: "+" → " ", %XX decoded   → {"q": "a b!"}
         └─────────── path:  %XX decoded, "+" kept    → "/a b+c"

=============================================================================
"""

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from ..utils import parse_query, split, url_decode


HEADER_TERMINATOR = b"\r\n\r\n"


class HTTPParseError(Exception):
    """
    Raised when raw request bytes cannot be turned into an HTTPRequest.

    Carries the status code to answer with. The codec itself only ever
    uses 400; the connection reader reuses this error for 408 (client
    stalled) and 413 (request too large).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class Method(Enum):
    """HTTP request methods understood by the router."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, token: str) -> "Method":
        """
        Map a request-line token to a Method.

        Matching is case-sensitive, as on the wire. Anything unrecognised
        (including lowercase spellings) is UNKNOWN.
        """
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:       Method enum member
        raw_target:   Request target exactly as sent ("/a%20b?x=1")
        path:         Percent-decoded path, no query ("/a b")
        version:      Version token from the request line ("HTTP/1.1")
        query:        Decoded query parameters, last duplicate wins
        headers:      Header name → value, names in the client's case
        body:         Raw body bytes
        path_params:  Values bound by the router; empty until a route matches
        remote_addr:  Client IP address, "" when unknown

    =========================================================================
    IMMUTABILITY
    =========================================================================

    Requests are frozen. The router never writes into the request it was
    given; it builds a copy with the bound parameters:

        bound = request.with_path_params({"name": "alice"})
        request.path_params   →  {}
        bound.path_params     →  {"name": "alice"}

    =========================================================================
    """

    method: Method
    raw_target: str
    path: str
    version: str = "HTTP/1.1"
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    remote_addr: str = ""

    # =========================================================================
    # ACCESSORS
    # =========================================================================

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Case-insensitive header lookup.

        Header names are stored as received, so "content-type" finds a
        header the client sent as "Content-Type".
        """
        if name in self.headers:
            return self.headers[name]
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query.get(name, default)

    def get_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.path_params.get(name, default)

    @property
    def content_length(self) -> int:
        """Content-Length header as an int (0 if missing or invalid)."""
        try:
            return int(self.get_header("Content-Length", "0"))
        except ValueError:
            return 0

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (invalid bytes replaced)."""
        return self.body.decode("utf-8", errors="replace")

    @property
    def json(self) -> Any:
        """
        Body parsed as JSON.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON.
        """
        try:
            return json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HTTPParseError(f"Invalid JSON body: {e}")

    def with_path_params(self, params: Mapping[str, str]) -> "HTTPRequest":
        """Return a copy of this request carrying exactly ``params``."""
        return replace(self, path_params=dict(params))


# =============================================================================
# PARSING
# =============================================================================

def _iter_lines(head: str):
    """Yield header-block lines with a trailing "\\r" removed."""
    for line in head.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        yield line


def _parse_headers(lines) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    for line in lines:
        if not line:
            break
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip()] = value.strip()
    return headers


def parse_request(data: bytes, remote_addr: str = "") -> HTTPRequest:
    """
    Parse a complete request buffer.

    =====================================================================
    PARSING STEPS
    =====================================================================

        1. Locate "\\r\\n\\r\\n"             missing  → HTTPParseError
        2. head = bytes before it, body = bytes after it
        3. First line → split on " "        < 3 tokens → HTTPParseError
        4. Target → path / query at the first "?"
        5. Remaining lines → headers until the first blank line

    =====================================================================

    Args:
        data: Raw bytes read from the socket.
        remote_addr: Client IP to record on the request.

    Returns:
        The parsed HTTPRequest.

    Raises:
        HTTPParseError: If the request is incomplete or the request line
            is malformed.
    """
    header_end = data.find(HEADER_TERMINATOR)
    if header_end == -1:
        raise HTTPParseError("Incomplete request: no header terminator")

    head = data[:header_end].decode("utf-8", errors="replace")
    body = data[header_end + len(HEADER_TERMINATOR):]

    lines = _iter_lines(head)
    request_line = next(lines)

    parts = split(request_line, " ")
    if len(parts) < 3:
        raise HTTPParseError(f"Invalid request line: {request_line!r}")

    method = Method.parse(parts[0])
    raw_target = parts[1]
    version = parts[2]

    # ─────────────────────────────────────────────────────────────────────
    # Target: "/path?query". Only the first "?" separates the two.
    # ─────────────────────────────────────────────────────────────────────
    raw_path, sep, raw_query = raw_target.partition("?")
    path = url_decode(raw_path, plus_as_space=False)
    query = parse_query(raw_query) if sep else {}

    headers = _parse_headers(lines)

    return HTTPRequest(
        method=method,
        raw_target=raw_target,
        path=path,
        version=version,
        query=query,
        headers=headers,
        body=body,
        remote_addr=remote_addr,
    )
