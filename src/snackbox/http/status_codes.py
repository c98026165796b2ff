"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The fixed set of status codes SnackBox knows how to name.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK, 201 Created, 204 No Content                       │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 301 Moved Permanently, 302 Found                          │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request, 403 Forbidden, 404 Not Found,            │
    │        │ 405 Method Not Allowed, 408 Request Timeout,              │
    │        │ 413 Payload Too Large                                     │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Server Error, 503 Service Unavailable        │
    └────────┴───────────────────────────────────────────────────────────┘

Every code the server emits on its own (parse errors, timeouts, oversize
requests, a saturated worker pool, static-file failures) is in this table.

Handlers are free to set any integer status. A code outside the table is
still written to the wire, but its reason phrase falls back to "OK". Clients
only look at the number, and existing consumers of SnackBox output rely on
that fallback.

=============================================================================
"""

from enum import IntEnum
from typing import Dict


DEFAULT_REASON = "OK"


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by SnackBox.

    IntEnum members compare equal to plain ints:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'Not Found'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201
    NO_CONTENT = 204

    # 3xx REDIRECTION
    MOVED_PERMANENTLY = 301
    FOUND = 302

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408           # Client stalled while sending the request
    PAYLOAD_TOO_LARGE = 413         # Request exceeded max_request_size

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500     # Handler raised
    SERVICE_UNAVAILABLE = 503       # Worker pool saturated

    @property
    def phrase(self) -> str:
        """Reason phrase for the status line."""
        return _STATUS_PHRASES[self]


_STATUS_PHRASES: Dict[int, str] = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.NO_CONTENT: "No Content",
    HTTPStatus.MOVED_PERMANENTLY: "Moved Permanently",
    HTTPStatus.FOUND: "Found",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}


def reason_phrase(code: int) -> str:
    """
    Reason phrase for any integer status code.

    Codes outside the table get "OK":

        reason_phrase(404)  →  "Not Found"
        reason_phrase(418)  →  "OK"
    """
    return _STATUS_PHRASES.get(code, DEFAULT_REASON)
