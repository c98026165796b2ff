"""
pytest configuration and fixtures.
"""

import socket
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, List, Tuple

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from snackbox import HTTPServer, ServerConfig
from snackbox.http import HTTPRequest, text


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request with a query string."""
    return (
        b"GET /hello/world?x=1&y=2 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a JSON body."""
    body = b'{"name": "alice", "snack": "crisps"}'
    return (
        b"POST /snacks HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
        + body
    )


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    """A small public directory plus a secret file next to it."""
    root = tmp_path / "public"
    root.mkdir()
    (root / "index.html").write_text("<h1>Snack Box</h1>")
    (root / "style.css").write_text("body { color: red; }")
    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n")
    (root / "notes.unknownext").write_bytes(b"raw")
    (root / "docs").mkdir()
    (root / "docs" / "index.html").write_text("<p>docs</p>")
    (root / "empty").mkdir()
    (tmp_path / "secret.txt").write_text("top secret")
    return root


def send_raw(port: int, data: bytes, timeout: float = 5.0) -> bytes:
    """Send raw bytes to the server and read until it closes."""
    with socket.create_connection(("127.0.0.1", port), timeout=timeout) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


def parse_response(raw: bytes) -> Tuple[int, Dict[str, str], bytes]:
    """Split a raw response into (status, headers, body)."""
    head, _, body = raw.partition(b"\r\n\r\n")
    lines = head.decode("utf-8").split("\r\n")
    status = int(lines[0].split(" ")[1])
    headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers[name.strip()] = value.strip()
    return status, headers, body


class LiveServer:
    """Runs an HTTPServer in a background thread for integration tests."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.stop()
        if not self.server.wait_for_shutdown(timeout=5.0):
            raise RuntimeError("Server did not stop accepting")
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=15.0)

    def request(self, data: bytes) -> Tuple[int, Dict[str, str], bytes]:
        return parse_response(send_raw(self.port, data))

    def get(self, target: str) -> Tuple[int, Dict[str, str], bytes]:
        return self.request(f"GET {target} HTTP/1.1\r\nHost: test\r\n\r\n".encode())


@pytest.fixture
def server_config(public_dir: Path) -> ServerConfig:
    """Test configuration: loopback, ephemeral port, small pool."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,
        public_dir=str(public_dir),
        min_workers=2,
        max_workers=4,
        timeout=2.0,
        log_level="WARNING",
    )


@pytest.fixture
def make_live_server() -> Generator[Callable[[HTTPServer], LiveServer], None, None]:
    """Start any prepared HTTPServer in the background; stopped on teardown."""
    started: List[LiveServer] = []

    def start(server: HTTPServer) -> LiveServer:
        live = LiveServer(server)
        live.start()
        started.append(live)
        return live

    yield start

    for live in started:
        live.stop()


@pytest.fixture
def live_server(server_config: ServerConfig) -> Generator[LiveServer, None, None]:
    """A running server with a few routes."""
    server = HTTPServer(server_config)

    @server.get("/hello/:name")
    def hello(request: HTTPRequest):
        return text(200, f"Hello {request.path_params['name']}!")

    @server.get("/users/:id")
    def get_user(request: HTTPRequest):
        return text(200, f"user {request.path_params['id']}")

    @server.post("/echo")
    def echo(request: HTTPRequest):
        return text(201, request.body)

    @server.get("/boom")
    def boom(request: HTTPRequest):
        raise RuntimeError("handler exploded")

    live = LiveServer(server)
    live.start()

    yield live

    live.stop()
