"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps file extensions to the Content-Type used when serving static files.

    ┌──────────────┬──────────────────────────────────┐
    │  Extension   │  Content-Type                    │
    ├──────────────┼──────────────────────────────────┤
    │  .html .htm  │  text/html; charset=utf-8        │
    │  .css        │  text/css; charset=utf-8         │
    │  .txt        │  text/plain; charset=utf-8       │
    │  .js         │  application/javascript          │
    │  .json       │  application/json                │
    │  .png        │  image/png                       │
    │  .jpg .jpeg  │  image/jpeg                      │
    │  .gif        │  image/gif                       │
    │  .svg        │  image/svg+xml                   │
    │  .ico        │  image/x-icon                    │
    │  (other)     │  application/octet-stream        │
    └──────────────┴──────────────────────────────────┘

Lookup is by the final suffix only and ignores case, so "LOGO.PNG" is
image/png and "archive.tar.gz" falls through to the default.

=============================================================================
"""

from pathlib import Path
from typing import Dict, Union


DEFAULT_MIME_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    ".html": "text/html; charset=utf-8",
    ".htm": "text/html; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".txt": "text/plain; charset=utf-8",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
}


def get_content_type(path: Union[str, Path]) -> str:
    """
    Content-Type header value for a file path.

    Examples:
        >>> get_content_type("index.html")
        'text/html; charset=utf-8'
        >>> get_content_type("/img/logo.PNG")
        'image/png'
        >>> get_content_type("notes.md")
        'application/octet-stream'
    """
    suffix = Path(path).suffix.lower()
    return CONTENT_TYPES.get(suffix, DEFAULT_MIME_TYPE)
