"""Boundary-delimited scanning of raw ``multipart/form-data`` bodies.

Pure functions over an in-memory ``bytes`` buffer; nothing here performs I/O.
"""

from .classify import PartKind, classify_part
from .extract import (
    extract_file_part,
    extract_text_field,
    locate_file_part,
    locate_named_part,
    locate_text_field,
)
from .headers import parse_part_headers
from .models import FilePart, Found, NotFound, NotFoundReason, Outcome, Part, PartHeaders
from .parts import PartIndex, PartScanner, ScanState, extract_all_file_parts, iter_parts
from .scanner import find_backward, find_forward

__all__ = [
    "FilePart",
    "Found",
    "NotFound",
    "NotFoundReason",
    "Outcome",
    "Part",
    "PartHeaders",
    "PartIndex",
    "PartKind",
    "PartScanner",
    "ScanState",
    "classify_part",
    "extract_all_file_parts",
    "extract_file_part",
    "extract_text_field",
    "find_backward",
    "find_forward",
    "iter_parts",
    "locate_file_part",
    "locate_named_part",
    "locate_text_field",
    "parse_part_headers",
]
