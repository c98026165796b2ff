"""
=============================================================================
CORE NETWORKING
=============================================================================

The transport half of the server, with no knowledge of routes or files:

    socket_server.py   listening socket + accept loop
    connection.py      one client socket: bounded read, full write, close
    thread_pool.py     bounded workers + bounded queue (admission policy)

=============================================================================
"""

from .socket_server import SocketServer, ServerStartupError
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "ServerStartupError",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
