"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Everything between raw bytes and handler functions:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest           parse_request()      │
    │ response.py      HTTPResponse → bytes          serialize_response() │
    │ status_codes.py  status code → reason phrase   reason_phrase()      │
    │ router.py        HTTPRequest → handler         Router.dispatch()    │
    │ mime_types.py    file extension → Content-Type get_content_type()   │
    └─────────────────────────────────────────────────────────────────────┘

Nothing in this package touches a socket; it is all pure functions and
plain data, which is what makes it easy to test in isolation.

=============================================================================
"""

from .request import HTTPRequest, HTTPParseError, Method, parse_request
from .response import (
    HTTPResponse,
    serialize_response,
    text,                   # any status, text body
    html,                   # any status, HTML body
    bad_request,            # 400
    forbidden,              # 403
    not_found,              # 404
    method_not_allowed,     # 405 + Allow
    request_timeout,        # 408
    payload_too_large,      # 413
    internal_error,         # 500
    service_unavailable,    # 503
    error_response,         # any status, reason phrase body
)
from .router import Router, Route, RouterFrozenError, Handler, Middleware, compile_path
from .status_codes import HTTPStatus, reason_phrase
from .mime_types import get_content_type

__all__ = [
    # Requests
    "HTTPRequest",
    "HTTPParseError",
    "Method",
    "parse_request",

    # Responses
    "HTTPResponse",
    "serialize_response",
    "text",
    "html",
    "bad_request",
    "forbidden",
    "not_found",
    "method_not_allowed",
    "request_timeout",
    "payload_too_large",
    "internal_error",
    "service_unavailable",
    "error_response",

    # Routing
    "Router",
    "Route",
    "RouterFrozenError",
    "Handler",
    "Middleware",
    "compile_path",

    # Status codes
    "HTTPStatus",
    "reason_phrase",

    # MIME types
    "get_content_type",
]
