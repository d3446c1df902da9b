"""Exact byte sub-sequence search.

Both helpers are total: a miss is ``None``, never an exception.
"""

from __future__ import annotations


def find_forward(haystack: bytes, needle: bytes, start: int = 0) -> int | None:
    """Return the index of the first *needle* at or after *start*."""
    if not needle or start < 0 or start > len(haystack) - len(needle):
        return None
    index = haystack.find(needle, start)
    return index if index != -1 else None


def find_backward(haystack: bytes, needle: bytes, before: int) -> int | None:
    """Return the index of the last *needle* starting at or before *before*."""
    if not needle or before < 0:
        return None
    # rfind's end bound is exclusive and applies to the match's last byte
    end = min(before + len(needle), len(haystack))
    index = haystack.rfind(needle, 0, end)
    return index if index != -1 else None
