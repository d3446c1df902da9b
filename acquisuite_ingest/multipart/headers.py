"""Part header parsing: ``name=`` and ``filename=`` from a raw header block."""

from __future__ import annotations

import re

from .models import PartHeaders

# ``\b`` keeps ``name=`` from matching the tail of ``filename=``
_NAME_RE = re.compile(r'\bname="([^"]*)"', re.IGNORECASE)
_FILENAME_RE = re.compile(r'\bfilename="([^"]+)"', re.IGNORECASE)


def parse_part_headers(raw: bytes) -> PartHeaders:
    """Parse the header bytes between a delimiter line and ``CRLF CRLF``.

    Only the first occurrence of each attribute counts. Filenames are
    reduced to their last ``/``-separated segment; a filename that is all
    path (``"dir/"``) comes back as ``None``.
    """
    text = raw.decode("utf-8", errors="replace")

    name_match = _NAME_RE.search(text)
    field_name = name_match.group(1) if name_match else None

    filename: str | None = None
    filename_match = _FILENAME_RE.search(text)
    if filename_match:
        filename = basename(filename_match.group(1)) or None

    return PartHeaders(field_name=field_name, filename=filename)


def basename(filename: str) -> str:
    """Strip any ``/``-delimited path prefix from a client-supplied filename."""
    return filename.rsplit("/", 1)[-1]
