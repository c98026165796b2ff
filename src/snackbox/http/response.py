"""
=============================================================================
HTTP RESPONSE
=============================================================================

The response value handlers return, the helpers that build the common ones,
and the serializer that turns a response into wire bytes.

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 404 Not Found\r\n                  ◄── status line
    Server: SnackBox/0.1\r\n                    ◄── seeded on every response
    Connection: close\r\n                       ◄── seeded on every response
    Content-Type: text/plain; charset=utf-8\r\n
    Content-Length: 9\r\n                       ◄── always equals len(body)
    \r\n
    Not Found                                   ◄── body bytes, verbatim

Headers are written in insertion order. The serializer owns Content-Length:
whatever a handler put there is overwritten with the real body length (in
place, so the header keeps its position), and it is appended when missing.
A client can therefore always trust Content-Length to frame the body.

Date is NOT added here. The connection server stamps it just before
writing, so serialize_response() stays a pure function of its input.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Union

from .status_codes import HTTPStatus, reason_phrase


SERVER_NAME = "SnackBox/0.1"
TEXT_PLAIN = "text/plain; charset=utf-8"
TEXT_HTML = "text/html; charset=utf-8"

# A middleware may hand back a response with this status to mean
# "no opinion, keep going".
NO_STATUS = 0


def _default_headers() -> Dict[str, str]:
    return {"Server": SERVER_NAME, "Connection": "close"}


@dataclass
class HTTPResponse:
    """
    An HTTP response under construction.

    Unlike requests, responses are mutable: handlers and the server fill
    them in step by step.

        response = HTTPResponse(status=201)
        response.set_header("Location", "/users/7").set_body("created")
    """

    status: int = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=_default_headers)
    body: bytes = b""

    @property
    def reason(self) -> str:
        return reason_phrase(self.status)

    @property
    def status_line(self) -> str:
        """Status line without the trailing CRLF ("HTTP/1.1 200 OK")."""
        return f"HTTP/1.1 {int(self.status)} {self.reason}"

    def has_header(self, name: str) -> bool:
        wanted = name.lower()
        return any(key.lower() == wanted for key in self.headers)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a header, replacing any existing one with the same name in any
        letter case. Returns self for chaining.
        """
        wanted = name.lower()
        for key in list(self.headers):
            if key.lower() == wanted and key != name:
                del self.headers[key]
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body; strings are encoded as UTF-8. Returns self."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.body = body
        return self

    def to_bytes(self) -> bytes:
        return serialize_response(self)


def serialize_response(response: HTTPResponse) -> bytes:
    """
    Serialize a response into the bytes sent on the wire.

    The response object itself is not modified.
    """
    headers = dict(response.headers)
    length = str(len(response.body))

    for name in headers:
        if name.lower() == "content-length":
            headers[name] = length
            break
    else:
        headers["Content-Length"] = length

    lines = [response.status_line]
    lines.extend(f"{name}: {value}" for name, value in headers.items())
    lines.append("")
    head = "\r\n".join(lines) + "\r\n"

    return head.encode("utf-8") + response.body


# =============================================================================
# HELPERS
# =============================================================================
#
# One-liners for the responses handlers and the server send most often.
# Every helper sets Content-Type and Content-Length.
#

def text(status: int, body: Union[str, bytes], content_type: str = TEXT_PLAIN) -> HTTPResponse:
    """
    Build a response with a text body.

    Example:
        return text(200, "Hello Snack Box!")
    """
    response = HTTPResponse(status=status)
    response.set_body(body)
    response.headers["Content-Type"] = content_type
    response.headers["Content-Length"] = str(len(response.body))
    return response


def html(status: int, body: Union[str, bytes]) -> HTTPResponse:
    return text(status, body, TEXT_HTML)


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return text(HTTPStatus.BAD_REQUEST, message)


def forbidden(message: str = "Forbidden") -> HTTPResponse:
    return text(HTTPStatus.FORBIDDEN, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return text(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed: Iterable[object] = ()) -> HTTPResponse:
    """
    405 response.

    Args:
        allowed: Methods that would have matched the path. When given, they
                 are listed in the Allow header ("GET, DELETE").
    """
    response = text(HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed")
    allowed = [str(m) for m in allowed]
    if allowed:
        response.headers["Allow"] = ", ".join(allowed)
    return response


def request_timeout(message: str = "Request Timeout") -> HTTPResponse:
    return text(HTTPStatus.REQUEST_TIMEOUT, message)


def payload_too_large(message: str = "Payload Too Large") -> HTTPResponse:
    return text(HTTPStatus.PAYLOAD_TOO_LARGE, message)


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    return text(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def service_unavailable(message: str = "Service Unavailable") -> HTTPResponse:
    return text(HTTPStatus.SERVICE_UNAVAILABLE, message)


def error_response(status: int, message: str = "") -> HTTPResponse:
    """Plain-text error response whose body defaults to the reason phrase."""
    return text(status, message or reason_phrase(status))
