"""Value types produced by the multipart scanner."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class PartHeaders:
    """Attributes recovered from one part's ``Content-Disposition`` header."""

    field_name: str | None = None
    filename: str | None = None


@dataclass(frozen=True)
class Part:
    """A located part: parsed headers plus the content span inside the body.

    Offsets point into the original body; nothing is copied until
    :meth:`content` is called.
    """

    field_name: str | None
    filename: str | None
    content_start: int
    content_end: int

    def content(self, body: bytes) -> bytes:
        return body[self.content_start:self.content_end]


@dataclass(frozen=True)
class FilePart:
    """A file attachment extracted from a multipart body."""

    field_name: str | None
    filename: str
    payload: bytes


class NotFoundReason(str, Enum):
    """Why a named lookup came back empty."""

    FIELD_MISSING = "field_missing"
    NO_ENCLOSING_DELIMITER = "no_enclosing_delimiter"
    NO_HEADER_TERMINATOR = "no_header_terminator"
    NO_CLOSING_DELIMITER = "no_closing_delimiter"


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    reason: NotFoundReason


Outcome = Union[Found[T], NotFound]
