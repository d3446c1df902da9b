"""Sort secondary attachments into device status reports and everything else."""

from __future__ import annotations

from enum import Enum


class PartKind(str, Enum):
    STATUS = "status"
    OTHER = "other"


def classify_part(field_name: str | None, filename: str | None) -> PartKind:
    filename = filename or ""
    if (
        "status" in (field_name or "").lower()
        or "status" in filename.lower()
        or filename.endswith(".txt")
    ):
        return PartKind.STATUS
    return PartKind.OTHER
