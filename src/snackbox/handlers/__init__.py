"""
Built-in handlers.

StaticFileHandler serves the public directory; the server uses it as the
fallback for every request the router does not claim.
"""

from .static import StaticFileHandler

__all__ = ["StaticFileHandler"]
