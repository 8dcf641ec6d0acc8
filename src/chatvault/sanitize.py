"""Text sanitizer applied before anything is embedded or stored.

Control characters (and the escaped ``\\u0000`` sequence some scrapers emit)
corrupt text columns and confuse embedding models, so every title, summary,
message and chunk passes through :func:`sanitize` first.
"""

from __future__ import annotations

import re
from typing import Any

# C0 controls, DEL and C1 controls.
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
# Lone surrogates (only reachable via surrogateescape/surrogatepass decoding)
# and the U+FFFD replacement character. Valid emoji are single code points
# in Python strings and never match.
_BROKEN_RE = re.compile(r"[\ud800-\udfff\ufffd]")
_ESCAPED_NULL = "\\u0000"
_WHITESPACE_RE = re.compile(r"\s+")


def sanitize(text: str | None) -> str:
    """Return *text* with control characters removed and whitespace collapsed.

    Never raises; ``None`` and empty input return ``""``.
    """
    if not text:
        return ""
    if not isinstance(text, str):
        text = str(text)
    cleaned = _CONTROL_RE.sub(" ", text)
    cleaned = cleaned.replace(_ESCAPED_NULL, "")
    cleaned = _BROKEN_RE.sub("", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return cleaned.strip()


def sanitize_data(value: Any) -> Any:
    """Recursively sanitize every string inside *value*.

    Dicts and lists are rebuilt with sanitized members; other scalars (numbers,
    booleans, ``None``) pass through unchanged.
    """
    if isinstance(value, str):
        return sanitize(value)
    if isinstance(value, dict):
        return {key: sanitize_data(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_data(item) for item in value]
    return value
