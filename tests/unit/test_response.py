"""
Unit tests for HTTP responses and serialization.
"""

from snackbox.http.request import Method
from snackbox.http.response import (
    SERVER_NAME,
    TEXT_HTML,
    TEXT_PLAIN,
    HTTPResponse,
    bad_request,
    error_response,
    forbidden,
    html,
    internal_error,
    method_not_allowed,
    not_found,
    payload_too_large,
    request_timeout,
    serialize_response,
    service_unavailable,
    text,
)
from snackbox.http.status_codes import HTTPStatus, reason_phrase


def split_wire(raw: bytes):
    """Split serialized bytes into (status line, header lines, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    return lines[0], lines[1:], body


class TestReasonPhrase:
    """Tests for status code reason phrases."""

    def test_known_codes(self):
        assert reason_phrase(200) == "OK"
        assert reason_phrase(404) == "Not Found"
        assert reason_phrase(405) == "Method Not Allowed"
        assert reason_phrase(503) == "Service Unavailable"

    def test_unknown_code_falls_back(self):
        assert reason_phrase(299) == "OK"
        assert reason_phrase(799) == "OK"

    def test_enum_phrase(self):
        assert HTTPStatus.NOT_FOUND == 404
        assert HTTPStatus.PAYLOAD_TOO_LARGE.phrase == "Payload Too Large"


class TestHTTPResponse:
    """Tests for HTTPResponse."""

    def test_defaults(self):
        """New responses are 200 with Server and Connection seeded."""
        response = HTTPResponse()
        assert response.status == 200
        assert response.headers == {"Server": SERVER_NAME, "Connection": "close"}
        assert response.body == b""

    def test_default_headers_not_shared(self):
        first = HTTPResponse()
        first.headers["X-A"] = "1"
        assert "X-A" not in HTTPResponse().headers

    def test_status_line(self):
        assert HTTPResponse(status=404).status_line == "HTTP/1.1 404 Not Found"
        assert HTTPResponse(status=HTTPStatus.CREATED).status_line == "HTTP/1.1 201 Created"

    def test_set_header_replaces_any_case(self):
        response = HTTPResponse()
        response.set_header("content-type", "text/plain")
        response.set_header("Content-Type", "application/json")
        assert response.headers["Content-Type"] == "application/json"
        assert "content-type" not in response.headers
        assert response.has_header("CONTENT-TYPE")

    def test_set_body_encodes_strings(self):
        response = HTTPResponse().set_body("héllo")
        assert response.body == "héllo".encode("utf-8")


class TestSerializeResponse:
    """Tests for serialize_response."""

    def test_status_line_and_headers(self):
        response = text(200, "Hello Snack Box!")
        status_line, header_lines, body = split_wire(serialize_response(response))

        assert status_line == "HTTP/1.1 200 OK"
        assert "Server: SnackBox/0.1" in header_lines
        assert "Connection: close" in header_lines
        assert "Content-Type: text/plain; charset=utf-8" in header_lines
        assert "Content-Length: 16" in header_lines
        assert body == b"Hello Snack Box!"

    def test_header_order_preserved(self):
        response = HTTPResponse()
        response.headers["X-First"] = "1"
        response.headers["X-Second"] = "2"
        _, header_lines, _ = split_wire(serialize_response(response))
        names = [line.split(":")[0] for line in header_lines]
        assert names == ["Server", "Connection", "X-First", "X-Second", "Content-Length"]

    def test_content_length_added_when_missing(self):
        response = HTTPResponse(body=b"abc")
        _, header_lines, _ = split_wire(serialize_response(response))
        assert "Content-Length: 3" in header_lines

    def test_wrong_content_length_corrected(self):
        """A handler-supplied Content-Length is replaced with the real one."""
        response = HTTPResponse(body=b"abcdef")
        response.headers["content-length"] = "999"
        _, header_lines, _ = split_wire(serialize_response(response))

        assert "content-length: 6" in header_lines
        assert not any(line.lower() == "content-length: 999" for line in header_lines)
        assert sum(line.lower().startswith("content-length") for line in header_lines) == 1

    def test_does_not_mutate_response(self):
        response = HTTPResponse(body=b"abc")
        serialize_response(response)
        assert "Content-Length" not in response.headers

    def test_unknown_status_reason(self):
        raw = serialize_response(HTTPResponse(status=299))
        assert raw.startswith(b"HTTP/1.1 299 OK\r\n")

    def test_empty_body(self):
        raw = serialize_response(HTTPResponse(status=204))
        assert raw.endswith(b"Content-Length: 0\r\n\r\n")

    def test_binary_body_verbatim(self):
        response = HTTPResponse(body=b"\x89PNG\r\n\r\n\x00")
        _, _, body = split_wire(response.to_bytes())
        assert body == b"\x89PNG\r\n\r\n\x00"


class TestHelpers:
    """Tests for response helper functions."""

    def test_text(self):
        response = text(201, "made")
        assert response.status == 201
        assert response.headers["Content-Type"] == TEXT_PLAIN
        assert response.headers["Content-Length"] == "4"
        assert response.body == b"made"

    def test_text_counts_bytes_not_characters(self):
        response = text(200, "é")
        assert response.headers["Content-Length"] == "2"

    def test_html(self):
        response = html(200, "<h1>hi</h1>")
        assert response.headers["Content-Type"] == TEXT_HTML
        assert response.body == b"<h1>hi</h1>"

    def test_error_helpers(self):
        assert bad_request().status == 400
        assert forbidden().status == 403
        assert not_found().status == 404
        assert not_found().body == b"Not Found"
        assert request_timeout().status == 408
        assert payload_too_large().status == 413
        assert internal_error().status == 500
        assert service_unavailable().status == 503

    def test_method_not_allowed_body(self):
        response = method_not_allowed()
        assert response.status == 405
        assert response.body == b"Method Not Allowed"
        assert "Allow" not in response.headers

    def test_method_not_allowed_allow_header(self):
        response = method_not_allowed([Method.GET, Method.DELETE])
        assert response.headers["Allow"] == "GET, DELETE"

    def test_error_response_defaults_to_reason(self):
        response = error_response(408)
        assert response.status == 408
        assert response.body == b"Request Timeout"

    def test_error_response_message(self):
        assert error_response(400, "bad snack").body == b"bad snack"
