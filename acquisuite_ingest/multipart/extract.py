"""Named lookups over a raw multipart body.

These lookups search for ``name="<field>"`` anywhere in the body, not only
inside header blocks, so file content that happens to contain that text can
be mistaken for a header. :class:`~acquisuite_ingest.multipart.parts.PartIndex`
offers header-anchored lookups without that risk.
"""

from __future__ import annotations

import structlog

from .headers import parse_part_headers
from .models import FilePart, Found, NotFound, NotFoundReason, Outcome, Part
from .scanner import find_backward, find_forward

logger = structlog.get_logger()

CRLF = b"\r\n"
HEADER_TERMINATOR = b"\r\n\r\n"


def delimiter(boundary: str | bytes) -> bytes:
    """``--<boundary>``.

    A ``str`` boundary maps back to its raw header bytes as latin-1; one with
    characters outside latin-1 is encoded as UTF-8 instead.
    """
    if isinstance(boundary, str):
        try:
            boundary = boundary.encode("latin-1")
        except UnicodeEncodeError:
            boundary = boundary.encode("utf-8")
    return b"--" + boundary


def skip_crlf(body: bytes, index: int) -> int:
    if body[index:index + 2] == CRLF:
        return index + 2
    return index


def locate_named_part(body: bytes, boundary: str | bytes, field_name: str) -> Outcome[Part]:
    """Find the part whose header carries ``name="<field_name>"``."""
    name_pos = find_forward(body, f'name="{field_name}"'.encode("utf-8"))
    if name_pos is None:
        return NotFound(NotFoundReason.FIELD_MISSING)

    delim = delimiter(boundary)
    part_start = find_backward(body, delim, name_pos)
    if part_start is None:
        return NotFound(NotFoundReason.NO_ENCLOSING_DELIMITER)

    headers_start = skip_crlf(body, part_start + len(delim))
    headers_end = find_forward(body, HEADER_TERMINATOR, headers_start)
    if headers_end is None:
        return NotFound(NotFoundReason.NO_HEADER_TERMINATOR)

    content_start = headers_end + len(HEADER_TERMINATOR)
    content_end = find_forward(body, CRLF + delim, content_start)
    if content_end is None:
        return NotFound(NotFoundReason.NO_CLOSING_DELIMITER)

    headers = parse_part_headers(body[headers_start:headers_end])
    logger.debug(
        "multipart_part_located",
        field_name=field_name,
        content_start=content_start,
        size=content_end - content_start,
    )
    return Found(
        Part(
            field_name=headers.field_name,
            filename=headers.filename,
            content_start=content_start,
            content_end=content_end,
        )
    )


def locate_text_field(body: bytes, boundary: str | bytes, field_name: str) -> Outcome[str]:
    outcome = locate_named_part(body, boundary, field_name)
    if isinstance(outcome, NotFound):
        return outcome
    return Found(decode_text(outcome.value.content(body)))


def locate_file_part(body: bytes, boundary: str | bytes, field_name: str) -> Outcome[FilePart]:
    outcome = locate_named_part(body, boundary, field_name)
    if isinstance(outcome, NotFound):
        return outcome
    part = outcome.value
    return Found(
        FilePart(
            field_name=part.field_name,
            filename=part.filename or "",
            payload=part.content(body),
        )
    )


def extract_text_field(body: bytes, boundary: str | bytes, field_name: str) -> str:
    """Return the trimmed text of a named field, or ``""`` if it can't be found."""
    outcome = locate_text_field(body, boundary, field_name)
    return outcome.value if isinstance(outcome, Found) else ""


def extract_file_part(body: bytes, boundary: str | bytes, field_name: str) -> FilePart | None:
    """Return a named file part's filename and raw bytes, or ``None``."""
    outcome = locate_file_part(body, boundary, field_name)
    return outcome.value if isinstance(outcome, Found) else None


def decode_text(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").strip()
