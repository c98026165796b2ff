"""
=============================================================================
SNACKBOX CLI
=============================================================================

    python -m snackbox                       # 0.0.0.0:8080, ./public
    python -m snackbox --port 3000
    python -m snackbox --public ./site --workers 8
    snackbox --host 127.0.0.1 --log-level DEBUG

Configuration is layered: built-in defaults, then SNACKBOX_* environment
variables (see ServerConfig.from_env), then command-line flags.

Exit status is 1 when the configuration is invalid or the listening socket
cannot be set up (for example, the port is taken).

=============================================================================
"""

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import ServerConfig
from .core import ServerStartupError
from .server import HTTPServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snackbox",
        description="Minimal HTTP/1.1 server with routing and static files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m snackbox                          # Serve ./public on :8080
  python -m snackbox --port 3000              # Custom port
  python -m snackbox --public ./site          # Another static root
  python -m snackbox --workers 8              # At most 8 worker threads
        """,
    )

    parser.add_argument("--host", "-H", default=None,
                        help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: 8080, 0 = any free port)")
    parser.add_argument("--public", "-d", default=None,
                        help="Directory to serve static files from (default: ./public)")
    parser.add_argument("--workers", "-w", type=int, default=None,
                        help="Maximum worker threads (default: 32)")
    parser.add_argument("--log-level", "-l", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"snackbox {__version__}")
    return parser


def config_from_args(args: argparse.Namespace, environ=None) -> ServerConfig:
    """Environment defaults overridden by whatever flags were given."""
    config = ServerConfig.from_env(environ)

    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.public is not None:
        config.public_dir = args.public
    if args.workers is not None:
        config.set_workers(args.workers)
    if args.log_level is not None:
        config.log_level = args.log_level

    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = config_from_args(args)
        server = HTTPServer(config)
    except ValueError as e:
        print(f"snackbox: invalid configuration: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except ServerStartupError as e:
        print(f"snackbox: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
