"""
=============================================================================
CONNECTION
=============================================================================

Wraps one accepted client socket: buffered reading of a single request,
full writes, and an orderly close.

=============================================================================
ONE CONNECTION, ONE REQUEST
=============================================================================

SnackBox speaks HTTP/1.1 with "Connection: close" semantics. Every
connection goes through the same straight line:

    accept ──► read_request() ──► (parse, route, serve) ──► send_all() ──► close()

There is no keep-alive loop and no pipelining, so anything the client sends
after the first request is drained and discarded on close.

=============================================================================
READING
=============================================================================

TCP hands over bytes in arbitrary chunks, so a request may arrive in many
recv() calls:

    recv #1:  "GET /hello HTTP/1.1\r\nHo"
    recv #2:  "st: x\r\nContent-Length: 5\r\n\r\nhel"
    recv #3:  "lo"

read_request() keeps reading fixed-size chunks until

    1. the header terminator "\r\n\r\n" has arrived, and
    2. if the headers announce a Content-Length, that many body bytes
       have arrived,

or the peer closes. Two limits bound every connection:

    ┌───────────────────┬──────────────────────────────────────────────┐
    │ max_request_size  │ total bytes buffered      → 413 Payload Too  │
    │                   │                             Large            │
    │ timeout           │ seconds for the whole     → 408 Request      │
    │                   │ request, from the first     Timeout          │
    │                   │ read                                         │
    └───────────────────┴──────────────────────────────────────────────┘

Both are reported by raising HTTPParseError with the matching status code,
so the server handles them exactly like malformed input.

close() drains unread client data for at most DRAIN_TIMEOUT seconds and
DRAIN_LIMIT bytes, so a client that keeps trickling bytes cannot hold the
closing thread.

=============================================================================
"""

import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..http.request import HEADER_TERMINATOR, HTTPParseError
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    """Where a connection is in its single pass."""

    NEW = "new"
    READING = "reading"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client (ip, port).
        id: Short identifier used in log lines.
        buffer_size: Bytes requested per recv() call.
        timeout: Seconds the client gets to deliver the whole request,
                 counted from the start of read_request(). None waits
                 forever.
        max_request_size: Cap on buffered request bytes.

    Usable as a context manager; the socket is closed on exit:

        with Connection(sock, addr) as conn:
            data = conn.read_request()
            conn.send_all(payload)
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 4096
    timeout: Optional[float] = 30.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _deadline: Optional[float] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        # Accepted sockets can inherit the listener's timeout; reset it.
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0] if self.address else ""

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read one request from the socket.

        Returns:
            The buffered request bytes. These are returned as-is when the
            peer closes early, so an incomplete request still reaches the
            parser (and is rejected there). b"" means the client sent
            nothing at all.

        Raises:
            HTTPParseError: 413 if the request grows past max_request_size,
                408 if the request is still incomplete when the timeout
                runs out (and some data has arrived).
        """
        self.state = ConnectionState.READING
        if self.timeout is not None:
            self._deadline = time.monotonic() + self.timeout

        try:
            # ─────────────────────────────────────────────────────────────
            # STEP 1: headers
            # ─────────────────────────────────────────────────────────────
            while HEADER_TERMINATOR not in self._buffer:
                if not self._fill():
                    return self._buffer

            # ─────────────────────────────────────────────────────────────
            # STEP 2: body, if Content-Length announces one
            # ─────────────────────────────────────────────────────────────
            header_end = self._buffer.find(HEADER_TERMINATOR)
            body_start = header_end + len(HEADER_TERMINATOR)
            content_length = _parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise HTTPParseError(
                    f"Request too large: Content-Length {content_length}",
                    status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
                )

            while len(self._buffer) - body_start < content_length:
                if not self._fill():
                    break

            return self._buffer

        except socket.timeout:
            if not self._buffer:
                logger.debug(f"[{self.id}] Timed out before any data arrived")
                return b""
            raise HTTPParseError(
                f"Timed out after {len(self._buffer)} bytes",
                status_code=HTTPStatus.REQUEST_TIMEOUT,
            )

    def _fill(self) -> bool:
        """Append one chunk to the buffer. False when the peer is done."""
        chunk = self._recv()
        if not chunk:
            return False
        self._buffer += chunk
        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: more than {self.max_request_size} bytes",
                status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
            )
        return True

    def _recv(self) -> bytes:
        if self._deadline is not None:
            remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                raise socket.timeout("request deadline exceeded")
            self.socket.settimeout(remaining)
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            # Client went away; treat like an orderly close
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_all(self, data: bytes) -> bool:
        """
        Write every byte of ``data``.

        Returns:
            True on success, False if the client disconnected.
        """
        self.state = ConnectionState.WRITING
        try:
            # The read deadline may have left only a sliver of timeout
            self.socket.settimeout(self.timeout)
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, drain_timeout: float = DRAIN_TIMEOUT):
        """
        Close the connection: send FIN, drain briefly, release the socket.

        Draining unread client data before close() keeps the kernel from
        answering with RST, which could discard the response we just sent.

        Args:
            drain_timeout: Overall bound on the drain, in seconds. At most
                           DRAIN_LIMIT bytes are drained either way.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        self._drain(drain_timeout)

        self.socket.close()
        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self, drain_timeout: float) -> None:
        deadline = time.monotonic() + drain_timeout
        drained = 0
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _parse_content_length(head: bytes) -> int:
    """
    Content-Length from a raw header block; 0 if missing or not a
    non-negative integer.
    """
    for line in head.split(b"\n")[1:]:
        name, sep, value = line.partition(b":")
        if sep and name.strip().lower() == b"content-length":
            try:
                length = int(value.strip())
            except ValueError:
                return 0
            return max(length, 0)
    return 0
