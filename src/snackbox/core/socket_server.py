"""
=============================================================================
SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Everything HTTP-specific
happens in the callback it hands each accepted Connection to.

=============================================================================
LIFECYCLE
=============================================================================

    start(handler)
        │
        ├──► socket()  +  SO_REUSEADDR
        ├──► bind((host, port))      ┐
        ├──► listen(backlog)         ┘ failure → ServerStartupError
        │
        ├──► ready event set          (wait_until_ready() returns)
        │
        └──► accept loop  ◄──────────── blocks here until shutdown()
                 │
                 │  accept() with a 0.5s timeout so the running flag
                 │  is re-checked regularly
                 │
                 └──► handler(Connection(...))

    shutdown()   flips the running flag; the loop exits within one
                 accept timeout and the listening socket is closed.

Process signals are not handled here. The CLI turns Ctrl+C into a
KeyboardInterrupt in the main thread; embedding code calls shutdown().

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .connection import Connection
from ..config import ServerConfig


logger = logging.getLogger(__name__)


ACCEPT_POLL_INTERVAL = 0.5


class ServerStartupError(OSError):
    """The listening socket could not be created, bound or put in listen mode."""


class SocketServer:
    """
    TCP accept loop.

        server = SocketServer(config)
        threading.Thread(target=server.start, args=(handle,)).start()
        server.wait_until_ready()
        ...
        server.shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready = threading.Event()
        self._stopped = threading.Event()
        self._bound_address: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The (host, port) actually bound, which differs from the configured
        port when port 0 was requested. Before binding, the configured one.
        """
        if self._bound_address is not None:
            return self._bound_address
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise ServerStartupError(f"Failed to create socket: {e}") from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as e:
            sock.close()
            raise ServerStartupError(f"Failed to set SO_REUSEADDR: {e}") from e

        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self) -> None:
        """
        Create, bind and listen. Called by start(); call it directly to
        surface startup errors before spawning the accept thread.

        Raises:
            ServerStartupError: On any socket, bind or listen failure.
        """
        if self._socket is not None:
            return

        host, port = self.config.host, self.config.port
        sock = self._create_socket()

        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {host}:{port}: {e}")
            raise ServerStartupError(
                f"Failed to bind to {host}:{port}: {e.strerror or e} "
                f"(is something already listening there?)"
            ) from e

        try:
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            raise ServerStartupError(f"Failed to listen on {host}:{port}: {e}") from e

        self._socket = sock
        self._bound_address = sock.getsockname()[:2]

    def start(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Bind (if needed) and run the accept loop. Blocks until shutdown().

        Raises:
            ServerStartupError: If the socket could not be set up.
        """
        self.bind()
        self._running = True
        self._stopped.clear()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            try:
                connection_handler(conn)
            except Exception:
                # One bad hand-off must not take the listener down
                logger.exception(f"[{conn.id}] Connection handler failed")
                conn.close()

    def shutdown(self) -> None:
        """Ask the accept loop to stop. Safe to call from any thread, repeatedly."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self) -> None:
        self._running = False
        self._ready.clear()
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        self._stopped.set()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. False on timeout."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited. False on timeout."""
        return self._stopped.wait(timeout)
