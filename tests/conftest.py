"""Shared test fixtures for the acquisuite_ingest test suite."""

from __future__ import annotations

import pytest

from acquisuite_ingest.config import IngestConfig, S3Config

BOUNDARY = "----AcquiSuiteBoundary7MA4YWxkTrZu0gW"
API_KEY = "secret-key"

# gzip magic followed by bytes that look like, but are not, a delimiter
LOG_BYTES = bytes([0x1F, 0x8B, 0x03, 0x00]) + b"\x00\xff\x10payload\r\n--not-a-boundary\r\n\x7f"


@pytest.fixture
def s3_config() -> S3Config:
    return S3Config(bucket="test-bucket", region="us-east-1")


@pytest.fixture
def ingest_config(s3_config: S3Config) -> IngestConfig:
    return IngestConfig(api_key=API_KEY, s3=s3_config)


# ------------------------------------------------------------------
# Multipart body builders
# ------------------------------------------------------------------


def build_multipart(
    parts: list[tuple[str, str | None, bytes]],
    boundary: str = BOUNDARY,
    *,
    close: bool = True,
) -> bytes:
    """Build a ``multipart/form-data`` body from ``(name, filename, content)`` tuples."""
    delim = b"--" + boundary.encode("latin-1")
    chunks: list[bytes] = []
    for name, filename, content in parts:
        disposition = f'Content-Disposition: form-data; name="{name}"'
        if filename is not None:
            disposition += f'; filename="{filename}"'
        chunks.append(delim + b"\r\n" + disposition.encode("utf-8") + b"\r\n")
        if filename is not None:
            chunks.append(b"Content-Type: application/octet-stream\r\n")
        chunks.append(b"\r\n" + content + b"\r\n")
    if close:
        chunks.append(delim + b"--\r\n")
    return b"".join(chunks)


def build_upload(
    *,
    serial: str | None = "12345",
    filetime: str = "2025-06-01 12:00:00",
    loopname: str = "Main",
    log_filename: str | None = "a.log.gz",
    log_bytes: bytes | None = LOG_BYTES,
    extra: list[tuple[str, str | None, bytes]] | None = None,
) -> bytes:
    """Build an AcquiSuite-style upload body."""
    parts: list[tuple[str, str | None, bytes]] = [
        ("MODE", None, b"LOGFILEUPLOAD"),
    ]
    if serial is not None:
        parts.append(("SERIALNUMBER", None, serial.encode("utf-8")))
    parts.append(("LOOPNAME", None, loopname.encode("utf-8")))
    parts.append(("FILETIME", None, filetime.encode("utf-8")))
    if log_bytes is not None:
        parts.append(("LOGFILE", log_filename, log_bytes))
    parts.extend(extra or [])
    return build_multipart(parts)


@pytest.fixture
def upload_body() -> bytes:
    return build_upload()
