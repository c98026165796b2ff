"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

Serves files from the public directory when no route matched a request.

=============================================================================
RESOLUTION
=============================================================================

    GET /css/site.css
          │
          ▼
    public_dir / "css/site.css"  ──resolve()──►  /srv/public/css/site.css
          │
          ├── outside public_dir?        → 404   (traversal, logged)
          ├── a directory?               → serve <dir>/index.html
          ├── not a regular file?        → 404
          ├── permission denied?         → 403
          ├── other I/O error?           → 500   (logged)
          └── OK                         → 200 + Content-Type by extension

resolve() collapses ".." components and follows symlinks before the
containment check, so neither "/../secret.txt" nor a symlink pointing out
of the public directory can escape it. A refused traversal is answered with
404, not 403, so the response does not confirm that the target exists.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Union

from ..http.mime_types import get_content_type
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, forbidden, internal_error, not_found
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Serve files below a public directory.

        static = StaticFileHandler("public")
        response = static.serve("/index.html")

    The directory does not have to exist; every lookup then returns 404.
    """

    def __init__(self, public_dir: Union[str, Path], index_file: str = "index.html"):
        """
        Args:
            public_dir: Directory files are served from.
            index_file: File served for a directory request.
        """
        self.public_dir = Path(public_dir).resolve()
        self.index_file = index_file

        if not self.public_dir.is_dir():
            logger.warning(f"Public directory does not exist: {self.public_dir}")

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Handler-shaped entry point; serves ``request.path``."""
        return self.serve(request.path)

    def serve(self, url_path: str) -> HTTPResponse:
        """
        Resolve a decoded URL path and build the response for it.

        Args:
            url_path: Decoded request path, e.g. "/img/logo.png".
        """
        relative = url_path.lstrip("/")

        try:
            full_path = (self.public_dir / relative).resolve()
        except (OSError, ValueError) as e:
            # ValueError: embedded NUL byte; OSError: symlink loop and friends
            logger.debug(f"Unresolvable static path {url_path!r}: {e}")
            return not_found()

        # ─────────────────────────────────────────────────────────────────
        # CONTAINMENT CHECK
        # ─────────────────────────────────────────────────────────────────
        try:
            full_path.relative_to(self.public_dir)
        except ValueError:
            logger.warning(f"Path traversal attempt: {url_path!r}")
            return not_found()

        # is_dir()/is_file() still raise for ENAMETOOLONG, EACCES and the like
        try:
            if full_path.is_dir():
                full_path = full_path / self.index_file
            if not full_path.is_file():
                return not_found()
        except PermissionError:
            logger.warning(f"Permission denied looking up {url_path!r}")
            return forbidden()
        except OSError as e:
            logger.debug(f"Static lookup failed for {url_path!r}: {e}")
            return not_found()

        return self._serve_file(full_path)

    def _serve_file(self, path: Path) -> HTTPResponse:
        try:
            content = path.read_bytes()
        except PermissionError:
            logger.warning(f"Permission denied reading {path}")
            return forbidden()
        except OSError as e:
            logger.error(f"Error reading static file {path}: {e}")
            return internal_error()

        response = HTTPResponse(status=HTTPStatus.OK, body=content)
        response.headers["Content-Type"] = get_content_type(path)
        response.headers["Content-Length"] = str(len(content))
        return response
