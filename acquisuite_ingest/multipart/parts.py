"""Single forward pass over every part of a multipart body.

:class:`PartScanner` walks the body once as an explicit state machine::

    SEEK_DELIMITER -> PARSING_HEADERS -> COLLECTING_CONTENT -> SEEK_DELIMITER
                   \\-> TERMINAL

It stops at the closing ``--<boundary>--`` marker or when the buffer runs
out. A final part with no closing delimiter runs to the end of the buffer,
unlike :func:`~acquisuite_ingest.multipart.extract.extract_file_part`, which
reports such a part as missing.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum

from .extract import CRLF, HEADER_TERMINATOR, decode_text, delimiter, skip_crlf
from .headers import parse_part_headers
from .models import FilePart, Part, PartHeaders
from .scanner import find_forward

CLOSE_MARKER = b"--"


class ScanState(str, Enum):
    SEEK_DELIMITER = "seek_delimiter"
    PARSING_HEADERS = "parsing_headers"
    COLLECTING_CONTENT = "collecting_content"
    TERMINAL = "terminal"


class PartScanner:
    """Iterate the parts of *body* in declaration order."""

    def __init__(self, body: bytes, boundary: str | bytes) -> None:
        self._body = body
        self._delimiter = delimiter(boundary)
        self._next_delimiter = CRLF + self._delimiter
        self._cursor = 0
        self.state = ScanState.SEEK_DELIMITER

    def __iter__(self) -> Iterator[Part]:
        while True:
            part = self.next_part()
            if part is None:
                return
            yield part

    def next_part(self) -> Part | None:
        """Advance to the next part, or return ``None`` once terminal."""
        body = self._body
        headers_start = 0
        content_start = 0
        headers = PartHeaders()

        while self.state is not ScanState.TERMINAL:
            if self.state is ScanState.SEEK_DELIMITER:
                found = find_forward(body, self._delimiter, self._cursor)
                if found is None:
                    self.state = ScanState.TERMINAL
                    break
                after = found + len(self._delimiter)
                if body[after:after + 2] == CLOSE_MARKER:
                    self.state = ScanState.TERMINAL
                    break
                headers_start = skip_crlf(body, after)
                self.state = ScanState.PARSING_HEADERS

            elif self.state is ScanState.PARSING_HEADERS:
                headers_end = find_forward(body, HEADER_TERMINATOR, headers_start)
                if headers_end is None:
                    self.state = ScanState.TERMINAL
                    break
                headers = parse_part_headers(body[headers_start:headers_end])
                content_start = headers_end + len(HEADER_TERMINATOR)
                self.state = ScanState.COLLECTING_CONTENT

            else:
                content_end = find_forward(body, self._next_delimiter, content_start)
                if content_end is None:
                    content_end = len(body)
                self._cursor = content_end
                self.state = ScanState.SEEK_DELIMITER
                return Part(
                    field_name=headers.field_name,
                    filename=headers.filename,
                    content_start=content_start,
                    content_end=content_end,
                )

        return None


def iter_parts(body: bytes, boundary: str | bytes) -> Iterator[Part]:
    return iter(PartScanner(body, boundary))


def extract_all_file_parts(body: bytes, boundary: str | bytes) -> list[FilePart]:
    """Every part that declares a non-empty filename, in declaration order."""
    return [
        FilePart(field_name=part.field_name, filename=part.filename, payload=part.content(body))
        for part in iter_parts(body, boundary)
        if part.filename
    ]


class PartIndex:
    """Field name -> part, built from one scan and anchored to header blocks.

    When a field name repeats, the first declaration wins. Parts without a
    ``name=`` attribute are not indexed.
    """

    def __init__(self, body: bytes, parts: dict[str, Part]) -> None:
        self._body = body
        self._parts = parts

    @classmethod
    def build(cls, body: bytes, boundary: str | bytes) -> PartIndex:
        parts: dict[str, Part] = {}
        for part in iter_parts(body, boundary):
            if part.field_name is not None:
                parts.setdefault(part.field_name, part)
        return cls(body, parts)

    @property
    def field_names(self) -> list[str]:
        return list(self._parts.keys())

    def get(self, field_name: str) -> Part | None:
        return self._parts.get(field_name)

    def text_field(self, field_name: str) -> str:
        part = self._parts.get(field_name)
        if part is None:
            return ""
        return decode_text(part.content(self._body))

    def file_part(self, field_name: str) -> FilePart | None:
        part = self._parts.get(field_name)
        if part is None:
            return None
        return FilePart(
            field_name=part.field_name,
            filename=part.filename or "",
            payload=part.content(self._body),
        )
