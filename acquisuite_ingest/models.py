"""Result models for the upload ingest service."""

from __future__ import annotations

from pydantic import BaseModel, Field


class IngestResult(BaseModel):
    """Outcome of handling one multipart upload."""

    stored: bool = Field(description="Whether the primary log file was written to S3")
    serial: str | None = Field(default=None, description="Device serial number used in keys")
    uris: list[str] = Field(
        default_factory=list,
        description="S3 URIs written, primary log file first",
    )
    skipped_reason: str | None = Field(
        default=None,
        description="Why nothing was stored (e.g. no_log_file)",
    )
