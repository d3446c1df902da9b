"""Device credential extraction and comparison.

AcquiSuite units can only be configured with a URL and, on some firmware,
a Basic-auth password, so the key is accepted from several places.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import re
from collections.abc import Mapping

_BASIC_RE = re.compile(r"^Basic\s+(.+)$", re.IGNORECASE)


def basic_auth_password(header: str | None) -> str:
    """Return the password half of a ``Basic`` Authorization header, or ``""``."""
    if not header:
        return ""
    match = _BASIC_RE.match(header)
    if not match:
        return ""
    try:
        decoded = base64.b64decode(match.group(1), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return ""
    _, sep, password = decoded.partition(":")
    return password if sep else ""


def provided_key(query: Mapping[str, str], headers: Mapping[str, str]) -> str:
    """First non-empty of query ``key``, query ``password``, ``x-api-key``, Basic password."""
    return (
        query.get("key")
        or query.get("password")
        or headers.get("x-api-key")
        or basic_auth_password(headers.get("authorization"))
    )


def is_authorized(provided: str, expected: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
