"""Ingest service configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings


class S3Config(BaseSettings):
    """S3 storage settings for uploaded log files and attachments."""

    model_config = {"env_prefix": "S3_"}

    bucket: str | None = Field(
        default=None,
        description="S3 bucket name (uploads are rejected with 500 when unset)",
    )
    log_prefix: str = Field(
        default="log-gz",
        description="S3 key prefix for the primary compressed log file",
    )
    status_prefix: str = Field(
        default="status",
        description="S3 key prefix for secondary status attachments",
    )
    attachments_prefix: str = Field(
        default="attachments",
        description="S3 key prefix for any other secondary attachment",
    )
    region: str = Field(default="us-east-1", description="AWS region")
    endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint URL (e.g. for MinIO or R2)",
    )


class IngestConfig(BaseSettings):
    """Top-level upload ingest configuration."""

    model_config = {"env_prefix": "INGEST_"}

    api_key: SecretStr | None = Field(
        default=None,
        description="Shared key devices must present",
    )
    host: str = Field(default="0.0.0.0", description="Bind address for the HTTP server")
    port: int = Field(default=8080, description="Port for the upload endpoint")
    log_json: bool = Field(default=True, description="Emit JSON log lines")
    log_level: str = Field(default="INFO", description="Root log level")
    log_field: str = Field(
        default="LOGFILE",
        description="Multipart field carrying the primary log file",
    )
    anchored_lookup: bool = Field(
        default=False,
        description="Resolve named fields from a header-anchored part index",
    )
    store_secondary_parts: bool = Field(
        default=True,
        description="Also store file parts other than the primary log file",
    )
    max_body_bytes: int = Field(
        default=0,
        description="Reject bodies larger than this many bytes (0 disables the cap)",
    )
    s3: S3Config = Field(default_factory=S3Config)
