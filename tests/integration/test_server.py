"""
Integration tests: a real server on a loopback socket.
"""

import re
import socket
import threading
import time

import pytest

from snackbox import HTTPServer, ServerConfig, ServerStartupError
from snackbox.core.connection import Connection
from snackbox.http import HTTPRequest, Method, Router, RouterFrozenError, parse_request, text


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")


class TestRouting:
    """Requests answered by registered routes."""

    def test_route_with_parameter(self, live_server):
        status, headers, body = live_server.get("/hello/alice")

        assert status == 200
        assert body == b"Hello alice!"
        assert headers["Content-Type"] == "text/plain; charset=utf-8"
        assert headers["Content-Length"] == str(len(body))

    def test_default_headers(self, live_server):
        _, headers, _ = live_server.get("/hello/bob")

        assert headers["Server"] == "SnackBox/0.1"
        assert headers["Connection"] == "close"
        assert DATE_PATTERN.match(headers["Date"])

    def test_percent_encoded_parameter(self, live_server):
        _, _, body = live_server.get("/hello/snack%20box")
        assert body == b"Hello snack box!"

    def test_post_body_echoed(self, live_server):
        payload = b"crisps and dip"
        status, headers, body = live_server.request(
            b"POST /echo HTTP/1.1\r\nHost: test\r\n"
            + f"Content-Length: {len(payload)}\r\n\r\n".encode()
            + payload
        )
        assert status == 201
        assert body == payload
        assert headers["Content-Length"] == str(len(payload))

    def test_handler_exception_is_500(self, live_server):
        status, _, body = live_server.get("/boom")
        assert status == 500
        assert body == b"Internal Server Error"

    def test_server_keeps_serving_after_500(self, live_server):
        live_server.get("/boom")
        status, _, _ = live_server.get("/hello/again")
        assert status == 200


class TestStaticFallback:
    """Requests that fall through to the public directory."""

    def test_index(self, live_server):
        status, headers, body = live_server.get("/")
        assert status == 200
        assert body == b"<h1>Snack Box</h1>"
        assert headers["Content-Type"] == "text/html; charset=utf-8"

    def test_file_content_type(self, live_server):
        status, headers, body = live_server.get("/logo.png")
        assert status == 200
        assert headers["Content-Type"] == "image/png"
        assert headers["Content-Length"] == str(len(body))

    def test_directory_index(self, live_server):
        status, _, body = live_server.get("/docs/")
        assert status == 200
        assert body == b"<p>docs</p>"

    def test_not_found(self, live_server):
        status, headers, body = live_server.get("/missing.txt")
        assert status == 404
        assert body == b"Not Found"
        assert "Date" in headers

    def test_traversal_rejected(self, live_server):
        status, _, body = live_server.get("/../secret.txt")
        assert status == 404
        assert b"top secret" not in body

    def test_encoded_traversal_rejected(self, live_server):
        status, _, body = live_server.get("/%2e%2e/secret.txt")
        assert status == 404
        assert b"top secret" not in body


class TestErrors:
    """Protocol-level error responses."""

    def test_overlong_path_segment(self, live_server):
        status, _, body = live_server.get("/" + "a" * 300)
        assert status == 404
        assert body == b"Not Found"

    def test_method_not_allowed(self, live_server):
        status, headers, body = live_server.request(
            b"DELETE /users/123 HTTP/1.1\r\nHost: test\r\n\r\n"
        )
        assert status == 405
        assert headers["Allow"] == "GET"
        assert body == b"Method Not Allowed"

    def test_malformed_request_line(self, live_server):
        status, headers, body = live_server.request(b"GARBAGE\r\n\r\n")
        assert status == 400
        assert body == b"Bad Request"
        assert headers["Connection"] == "close"

    def test_unterminated_request(self, live_server):
        """The client half-closes before finishing the header block."""
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=5.0) as sock:
            sock.sendall(b"GET / HTTP/1.1\r\nHost: test\r\n")
            sock.shutdown(socket.SHUT_WR)
            raw = sock.recv(65536)
        assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")

    def test_request_too_large(self, live_server):
        status, _, _ = live_server.request(
            b"POST /echo HTTP/1.1\r\nHost: test\r\nContent-Length: 5000000\r\n\r\n"
        )
        assert status == 413

    def test_request_timeout(self, live_server):
        """A client that stalls mid-request gets 408 once the timeout passes."""
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=10.0) as sock:
            sock.sendall(b"GET / HTTP/1.1\r\n")
            raw = sock.recv(65536)
        assert raw.startswith(b"HTTP/1.1 408 Request Timeout\r\n")

    def test_silent_client(self, live_server):
        """A client that connects and sends nothing is closed without a response."""
        with socket.create_connection(("127.0.0.1", live_server.port), timeout=5.0) as sock:
            sock.shutdown(socket.SHUT_WR)
            assert sock.recv(1024) == b""


class TestHandleRequest:
    """HTTPServer.handle_request without a socket."""

    def make_server(self, public_dir) -> HTTPServer:
        return HTTPServer(ServerConfig(port=0, public_dir=str(public_dir)))

    def test_route_beats_static(self, public_dir):
        server = self.make_server(public_dir)
        server.get("/index.html", lambda r: text(200, "from route"))

        request = parse_request(b"GET /index.html HTTP/1.1\r\n\r\n")
        assert server.handle_request(request).body == b"from route"

    def test_static_file_wins_over_405(self, public_dir):
        """An existing file is served even when a route has the path under another method."""
        server = self.make_server(public_dir)
        server.post("/style.css", lambda r: text(200, "posted"))

        response = server.handle_request(parse_request(b"GET /style.css HTTP/1.1\r\n\r\n"))
        assert response.status == 200
        assert response.body == b"body { color: red; }"

    def test_allow_lists_every_method(self, public_dir):
        server = self.make_server(public_dir)
        server.get("/users/:id", lambda r: text(200, "get"))
        server.delete("/users/:id", lambda r: text(204, ""))

        response = server.handle_request(parse_request(b"PUT /users/9 HTTP/1.1\r\n\r\n"))
        assert response.status == 405
        assert response.headers["Allow"] == "GET, DELETE"

    def test_middleware_exception_is_500(self, public_dir):
        server = self.make_server(public_dir)

        def broken(request: HTTPRequest):
            raise KeyError("nope")

        server.use(broken)
        response = server.handle_request(parse_request(b"GET / HTTP/1.1\r\n\r\n"))
        assert response.status == 500

    def test_overlong_path_segment(self, public_dir):
        server = self.make_server(public_dir)
        request = parse_request(b"GET /" + b"a" * 300 + b" HTTP/1.1\r\n\r\n")
        assert server.handle_request(request).status == 404

    def test_static_lookup_exception_is_500(self, public_dir, monkeypatch):
        server = self.make_server(public_dir)

        def broken(path):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(server._static, "serve", broken)
        response = server.handle_request(parse_request(b"GET /x HTTP/1.1\r\n\r\n"))
        assert response.status == 500

    def test_handler_returning_none_is_500(self, public_dir):
        server = self.make_server(public_dir)
        server.get("/index.html", lambda r: None)

        response = server.handle_request(parse_request(b"GET /index.html HTTP/1.1\r\n\r\n"))
        assert response.status == 500

    def test_unknown_method_served_from_static(self, public_dir):
        server = self.make_server(public_dir)
        request = parse_request(b"BREW /index.html HTTP/1.1\r\n\r\n")
        assert request.method is Method.UNKNOWN
        assert server.handle_request(request).status == 200

    def test_invalid_config_rejected(self, public_dir):
        with pytest.raises(ValueError):
            HTTPServer(ServerConfig(port=99999, public_dir=str(public_dir)))


class TestLifecycle:
    """Startup, admission and shutdown."""

    def test_port_in_use(self, server_config):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            server_config.port = blocker.getsockname()[1]

            server = HTTPServer(server_config)
            with pytest.raises(ServerStartupError):
                server.run()
            assert not server.is_running
        finally:
            blocker.close()

    def test_router_frozen_while_running(self, live_server):
        with pytest.raises(RouterFrozenError):
            live_server.server.get("/late", lambda r: text(200, "late"))

    def test_replace_router_while_running(self, live_server):
        with pytest.raises(RuntimeError):
            live_server.server.set_router(Router())

    def test_ephemeral_port_reported(self, live_server):
        host, port = live_server.server.address
        assert host == "127.0.0.1"
        assert port > 0

    def test_full_pool_answers_503(self, server_config, monkeypatch):
        server = HTTPServer(server_config)
        monkeypatch.setattr(server._thread_pool, "submit", lambda *args, **kwargs: False)

        server_sock, client_sock = socket.socketpair()
        try:
            conn = Connection(socket=server_sock, address=("127.0.0.1", 40000), timeout=1.0)
            client_sock.shutdown(socket.SHUT_WR)
            server._handle_connection(conn)

            raw = client_sock.recv(65536)
            assert raw.startswith(b"HTTP/1.1 503 Service Unavailable\r\n")
        finally:
            client_sock.close()
            server_sock.close()

    def test_trickling_rejected_client_does_not_block_accept(self, server_config, make_live_server):
        """A rejected client that keeps sending bytes cannot stall the acceptor."""
        server_config.min_workers = 1
        server_config.max_workers = 1
        server_config.queue_size = 1
        server_config.timeout = 1.0
        live = make_live_server(HTTPServer(server_config))

        stalled = []
        stop = threading.Event()

        def trickle(sock):
            while not stop.is_set():
                try:
                    sock.sendall(b"x")
                except OSError:
                    return
                stop.wait(0.1)

        try:
            # One stalled client holds the worker, a second waits in the queue
            for _ in range(2):
                sock = socket.create_connection(("127.0.0.1", live.port), timeout=5.0)
                sock.sendall(b"GET / HTTP/1.1\r\n")
                stalled.append(sock)
                time.sleep(0.3)

            rejected = socket.create_connection(("127.0.0.1", live.port), timeout=5.0)
            stalled.append(rejected)
            rejected.sendall(b"GET / HTTP/1.1\r\n")
            sender = threading.Thread(target=trickle, args=(rejected,), daemon=True)
            sender.start()

            # Both stalled clients run into their 1s deadline
            time.sleep(2.5)

            status, headers, _ = live.get("/logo.png")
            assert status == 200
            assert headers["Content-Type"] == "image/png"
        finally:
            stop.set()
            for sock in stalled:
                sock.close()

    def test_concurrent_requests(self, live_server):
        results = []

        def fetch(i):
            results.append(live_server.get(f"/users/{i}"))

        threads = [threading.Thread(target=fetch, args=(i,)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert len(results) == 10
        assert all(status == 200 for status, _, _ in results)
        assert sorted(body for _, _, body in results) == sorted(
            f"user {i}".encode() for i in range(10)
        )
