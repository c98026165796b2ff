"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every knob the server exposes, in one dataclass.

    ┌──────────────────┬────────────────────┬──────────────────────────────┐
    │ Group            │ Fields             │ Consumed by                  │
    ├──────────────────┼────────────────────┼──────────────────────────────┤
    │ network          │ host, port,        │ SocketServer                 │
    │                  │ backlog            │                              │
    │ per connection   │ buffer_size,       │ Connection                   │
    │                  │ timeout,           │                              │
    │                  │ max_request_size   │                              │
    │ concurrency      │ min_workers,       │ ThreadPool                   │
    │                  │ max_workers,       │                              │
    │                  │ queue_size         │                              │
    │ static files     │ public_dir,        │ StaticFileHandler            │
    │                  │ index_file         │                              │
    │ identity / logs  │ server_name,       │ HTTPServer                   │
    │                  │ log_level          │                              │
    └──────────────────┴────────────────────┴──────────────────────────────┘

Values come from code, from SNACKBOX_* environment variables (from_env) or
from the command line (__main__). validate() runs before the socket is
opened, so a bad value fails at startup instead of on the first request.

=============================================================================
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional


ENV_PREFIX = "SNACKBOX_"


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

        ServerConfig(host="127.0.0.1", port=0, public_dir="site")

    port=0 asks the OS for a free port; HTTPServer.address reports the one
    actually bound.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind. "0.0.0.0" listens on every IPv4 interface."""

    port: int = 8080
    """TCP port. 0 = ephemeral port chosen by the OS."""

    backlog: int = 64
    """Pending-connection queue length passed to listen()."""

    # ─────────────────────────────────────────────────────────────────────
    # PER CONNECTION
    # ─────────────────────────────────────────────────────────────────────

    buffer_size: int = 4096
    """Bytes requested per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Seconds the client has to deliver a complete request (408 after that).
    None disables the timeout (a stalled client then holds a worker).
    """

    max_request_size: int = 1024 * 1024
    """Largest request (headers + body) accepted before answering 413."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started with the server."""

    max_workers: int = 32
    """Upper bound on worker threads."""

    queue_size: int = 128
    """Accepted connections allowed to wait for a worker before 503."""

    # ─────────────────────────────────────────────────────────────────────
    # STATIC FILES
    # ─────────────────────────────────────────────────────────────────────

    public_dir: str = "public"
    """Directory served when no route matches."""

    index_file: str = "index.html"
    """File served for a directory request."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY AND LOGGING
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "SnackBox/0.1"
    """Value of the Server response header."""

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING, ERROR or CRITICAL."""

    @classmethod
    def from_env(cls, environ=None) -> "ServerConfig":
        """
        Build a configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

            SNACKBOX_HOST        bind address        (default 0.0.0.0)
            SNACKBOX_PORT        port                (default 8080)
            SNACKBOX_PUBLIC_DIR  static root         (default public)
            SNACKBOX_WORKERS     max worker threads  (default 32)
            SNACKBOX_TIMEOUT     request timeout, s  ("none" disables)
            SNACKBOX_LOG_LEVEL   logging level       (default INFO)

        =====================================================================

        Args:
            environ: Mapping to read instead of os.environ (for tests).

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        config = cls()

        if get("HOST"):
            config.host = get("HOST")
        if get("PORT"):
            config.port = int(get("PORT"))
        if get("PUBLIC_DIR"):
            config.public_dir = get("PUBLIC_DIR")
        if get("WORKERS"):
            config.set_workers(int(get("WORKERS")))
        if get("TIMEOUT"):
            raw = get("TIMEOUT")
            config.timeout = None if raw.lower() == "none" else float(raw)
        if get("LOG_LEVEL"):
            config.log_level = get("LOG_LEVEL").upper()

        return config

    def set_workers(self, workers: int) -> None:
        """Cap the pool at ``workers`` threads, lowering min_workers to fit."""
        self.max_workers = workers
        self.min_workers = min(self.min_workers, workers)

    def validate(self) -> None:
        """
        Check every value, raising ValueError on the first bad one.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0 (or None to disable)")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")
