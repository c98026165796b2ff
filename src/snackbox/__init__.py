"""
=============================================================================
SNACKBOX - a small HTTP/1.1 server on raw sockets
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   bytes ──► parse_request ──► Router.dispatch ──► handler            │
    │                                     │                                │
    │                                     └── no match ──► static file     │
    │                                                                      │
    │   HTTPResponse ──► serialize_response ──► bytes ──► close            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

One request per connection ("Connection: close"), fully buffered bodies,
a bounded worker pool and path-template routing with middleware.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    snackbox/
    ├── __main__.py          # CLI (python -m snackbox)
    ├── server.py            # HTTPServer: wires everything together
    ├── config.py            # ServerConfig dataclass
    ├── utils.py             # URL decoding, query parsing, timestamps
    ├── core/
    │   ├── socket_server.py # listening socket + accept loop
    │   ├── connection.py    # one client socket
    │   └── thread_pool.py   # bounded worker pool
    ├── http/
    │   ├── request.py       # parse_request, HTTPRequest, Method
    │   ├── response.py      # HTTPResponse, serialize_response, helpers
    │   ├── router.py        # Router, path templates, middleware
    │   ├── status_codes.py  # reason phrases
    │   └── mime_types.py    # Content-Type by extension
    └── handlers/
        └── static.py        # public directory fallback

=============================================================================
QUICK START
=============================================================================

    from snackbox import HTTPServer, ServerConfig
    from snackbox.http import text

    server = HTTPServer(ServerConfig(port=8080, public_dir="public"))

    @server.get("/hello/:name")
    def hello(request):
        return text(200, f"Hello {request.path_params['name']}!")

    server.run()

=============================================================================
"""

__version__ = "0.1.0"

from .server import HTTPServer
from .config import ServerConfig
from .core import ServerStartupError

__all__ = ["HTTPServer", "ServerConfig", "ServerStartupError", "__version__"]
