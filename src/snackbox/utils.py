"""
=============================================================================
TEXT UTILITIES
=============================================================================

Small, dependency-free helpers shared by the codec, the router and the
server: percent-decoding, query-string parsing, string predicates and the
timestamp format used for the Date header.

=============================================================================
PERCENT-ENCODING IN ONE PICTURE
=============================================================================

    /search?q=snack%20box&tag=a+b
            ──┬───────────  ──┬──
              │               │
        %20 → " "        + → " "   (query strings only)

    Paths are decoded with unquote() so "+" stays a literal plus.
    Query strings use unquote_plus() because HTML forms encode spaces as "+".

=============================================================================
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import parse_qsl, unquote, unquote_plus


RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def url_decode(value: str, plus_as_space: bool = True) -> str:
    """
    Decode %XX escapes in a URL component.

    Args:
        value: Encoded text.
        plus_as_space: Translate "+" into a space (query-string rules).
                       Pass False for path components.

    Returns:
        The decoded text. Malformed escapes are left as-is.
    """
    if plus_as_space:
        return unquote_plus(value)
    return unquote(value)


def parse_query(query: str) -> Dict[str, str]:
    """
    Parse a query string into a flat mapping.

    Pairs are separated by "&". A pair without "=" maps to "". When a key
    repeats, the last occurrence wins:

        parse_query("a=1&a=2&flag")  →  {"a": "2", "flag": ""}
    """
    if not query:
        return {}
    # dict() keeps the last value for duplicate keys
    return dict(parse_qsl(query, keep_blank_values=True))


def split(s: str, delim: str) -> List[str]:
    """
    Split on a single-character delimiter.

    Consecutive delimiters produce empty tokens, but a trailing delimiter
    does not add a final empty token:

        split("a  b", " ")  →  ["a", "", "b"]
        split("a b ", " ")  →  ["a", "b"]
        split("", " ")      →  []
    """
    parts = s.split(delim)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def starts_with(s: str, prefix: str) -> bool:
    return s.startswith(prefix)


def ends_with(s: str, suffix: str) -> bool:
    return s.endswith(suffix)


def now_rfc3339(now: Optional[datetime] = None) -> str:
    """
    Format a UTC timestamp as YYYY-MM-DDTHH:MM:SSZ.

    Args:
        now: Timestamp to format (naive values are treated as UTC).
             Defaults to the current time.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime(RFC3339_FORMAT)
