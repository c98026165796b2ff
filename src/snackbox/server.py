"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together: SocketServer accepts, ThreadPool runs, Connection
reads and writes, the codec parses and serializes, the Router dispatches and
StaticFileHandler covers everything the router does not.

=============================================================================
ARCHITECTURE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          HTTPServer                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   SocketServer ──accept──► _handle_connection(conn)                 │
    │   (1 thread)                     │                                   │
    │                                  ├── pool full → 503, close          │
    │                                  ▼                                   │
    │   ThreadPool ─────────────► _process_connection(conn)               │
    │   (N workers)                    │                                   │
    │                                  ▼                                   │
    │                         conn.read_request()   ── 408 / 413           │
    │                                  │                                   │
    │                         parse_request()       ── 400                 │
    │                                  │                                   │
    │                         handle_request()                             │
    │                           ├── router.dispatch()                      │
    │                           │     └── None? ─► static file             │
    │                           │                   └── 404 and the path   │
    │                           │                       has routes? ─► 405 │
    │                           └── handler raised ─► 500                  │
    │                                  │                                   │
    │                         Date / Content-Length defaults               │
    │                         conn.send_all()  ─►  conn.close()            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    server = HTTPServer(ServerConfig(port=8080, public_dir="site"))

    @server.get("/hello/:name")               build phase: register routes
    def hello(request): ...                   and middleware

    server.run()                              router frozen, socket bound,
                                              workers started, blocks

    server.stop()   (any thread)  or Ctrl+C   accept loop exits, queued
                                              connections are finished,
                                              workers exit

=============================================================================
"""

import logging
import time
from pathlib import Path
from typing import Optional, Tuple, Union

from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .handlers import StaticFileHandler
from .http import (
    HTTPParseError, HTTPRequest, HTTPResponse, HTTPStatus, Router,
    error_response, internal_error, method_not_allowed, parse_request,
    serialize_response, service_unavailable,
)
from .http.response import SERVER_NAME
from .utils import now_rfc3339


logger = logging.getLogger(__name__)
access_logger = logging.getLogger("snackbox.access")


SHUTDOWN_TIMEOUT = 10.0

# Rejections are closed on the acceptor thread; keep the drain short
REJECT_DRAIN_TIMEOUT = 0.1


class HTTPServer:
    """
    A threaded HTTP/1.1 server with routing and static-file fallback.

    Example:
        server = HTTPServer(ServerConfig(port=8080))

        @server.get("/")
        def index(request):
            return text(200, "Hello Snack Box!")

        server.run()
    """

    def __init__(self, config: Optional[ServerConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration; defaults to ServerConfig().
            router: Router to dispatch to; a fresh one is created if omitted.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = router if router is not None else Router()
        self._static = StaticFileHandler(self.config.public_dir, self.config.index_file)

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )

        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def router(self) -> Router:
        return self._router

    def set_router(self, router: Router) -> "HTTPServer":
        """Replace the router. Only allowed before run()."""
        if self._running:
            raise RuntimeError("Cannot replace the router while the server is running")
        self._router = router
        return self

    def set_public_dir(self, public_dir: Union[str, Path]) -> "HTTPServer":
        """Change the static-file root. Only allowed before run()."""
        if self._running:
            raise RuntimeError("Cannot change the public directory while the server is running")
        self.config.public_dir = str(public_dir)
        self._static = StaticFileHandler(public_dir, self.config.index_file)
        return self

    def use(self, middleware) -> "HTTPServer":
        self._router.use(middleware)
        return self

    def route(self, method, path: str, handler=None):
        return self._router.route(method, path, handler)

    def get(self, path: str, handler=None):
        return self._router.get(path, handler)

    def post(self, path: str, handler=None):
        return self._router.post(path, handler)

    def put(self, path: str, handler=None):
        return self._router.put(path, handler)

    def patch(self, path: str, handler=None):
        return self._router.patch(path, handler)

    def delete(self, path: str, handler=None):
        return self._router.delete(path, handler)

    def head(self, path: str, handler=None):
        return self._router.head(path, handler)

    def options(self, path: str, handler=None):
        return self._router.options(path, handler)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); meaningful once wait_until_ready() returned."""
        return self._socket_server.address

    def run(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Start serving and block until stop() or Ctrl+C.

        Args:
            host: Override config.host.
            port: Override config.port.

        Raises:
            ServerStartupError: If the listening socket cannot be set up.
        """
        if host is not None:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self._router.freeze()

        # Bind before starting workers so a busy port fails fast and clean
        self._socket_server.bind()

        self._running = True
        self._thread_pool.start()
        logger.info(
            f"{self.config.server_name} serving {self._static.public_dir} "
            f"with {len(self._router.routes)} routes"
        )

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def stop(self) -> None:
        """Ask a running server to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server accepts connections. False on timeout."""
        return self._socket_server.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited. False on timeout."""
        return self._socket_server.wait_for_shutdown(timeout)

    def _setup_logging(self) -> None:
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("snackbox").setLevel(level)

    def _shutdown(self) -> None:
        logger.info("Shutting down server...")
        self._socket_server.shutdown()
        self._thread_pool.shutdown(wait=True, timeout=SHUTDOWN_TIMEOUT)
        self._running = False
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Hand a freshly accepted connection to the pool (acceptor thread)."""
        try:
            accepted = self._thread_pool.submit(self._process_connection, conn)
        except RuntimeError:
            # Pool already stopping
            conn.close()
            return

        if not accepted:
            logger.warning(f"[{conn.id}] Worker queue full, rejecting {conn.client_ip}")
            response = service_unavailable()
            self._apply_defaults(response)
            conn.send_all(serialize_response(response))
            conn.close(drain_timeout=REJECT_DRAIN_TIMEOUT)

    def _process_connection(self, conn: Connection) -> None:
        """Read, answer and close one connection (worker thread)."""
        started = time.time()
        request: Optional[HTTPRequest] = None

        with conn:
            try:
                raw = conn.read_request()
            except HTTPParseError as e:
                logger.info(f"[{conn.id}] {e}")
                response = error_response(e.status_code)
            else:
                if not raw:
                    logger.debug(f"[{conn.id}] Client sent no data")
                    return
                try:
                    request = parse_request(raw, remote_addr=conn.client_ip)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    response = error_response(HTTPStatus.BAD_REQUEST)
                else:
                    response = self.handle_request(request)

            self._apply_defaults(response)
            payload = serialize_response(response)
            sent = conn.send_all(payload)

        self._log_access(conn, request, response, len(response.body), started, sent)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def handle_request(self, request: HTTPRequest) -> HTTPResponse:
        """
        Produce the response for a parsed request.

        Router first; on no match, the static file for the path. A static
        404 for a path that some route knows (under another method) becomes
        405 with an Allow header. Exceptions from middleware or handlers
        are logged and answered with 500.
        """
        try:
            response = self._router.dispatch(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return internal_error()

        if response is not None:
            return response

        # Router said "no match"; fall back to the public directory
        try:
            response = self._static.serve(request.path)
        except Exception as e:
            logger.exception(f"Static lookup error for {request.path}: {e}")
            return internal_error()

        if response.status == HTTPStatus.NOT_FOUND:
            allowed = self._router.allowed_methods_for(request.path)
            if allowed:
                return method_not_allowed(allowed)

        return response

    def _apply_defaults(self, response: HTTPResponse) -> None:
        if response.headers.get("Server") == SERVER_NAME:
            response.headers["Server"] = self.config.server_name
        if not response.has_header("Date"):
            response.headers["Date"] = now_rfc3339()
        if not response.has_header("Content-Length"):
            response.headers["Content-Length"] = str(len(response.body))

    def _log_access(self, conn: Connection, request: Optional[HTTPRequest],
                    response: HTTPResponse, length: int, started: float, sent: bool) -> None:
        """One line per request, roughly Apache common log format."""
        if request is not None:
            line = f"{request.method} {request.raw_target}"
        else:
            line = "-"
        duration_ms = (time.time() - started) * 1000
        suffix = "" if sent else " (send failed)"
        access_logger.info(
            f'{conn.client_ip or "-"} - - [{now_rfc3339()}] "{line}" '
            f"{int(response.status)} {length} {duration_ms:.1f}ms{suffix}"
        )
