"""S3 storage for uploaded log files and attachments.

All boto3 calls are wrapped with ``asyncio.to_thread()`` to avoid blocking.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime

import boto3
import structlog

from .config import S3Config

logger = structlog.get_logger()

MAX_KEY_SEGMENT = 180


class MissingBucketError(RuntimeError):
    """Raised when an upload arrives but no bucket is configured."""


class UploadStoreError(RuntimeError):
    """Raised when an extracted payload could not be written to S3."""


class UploadS3Store:
    """Write extracted upload payloads to S3 under date-partitioned keys."""

    def __init__(self, config: S3Config) -> None:
        self._config = config
        self._client = None  # type: ignore[assignment]

    @property
    def is_started(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        """Create the boto3 S3 client."""
        kwargs: dict = {"region_name": self._config.region}
        if self._config.endpoint_url:
            kwargs["endpoint_url"] = self._config.endpoint_url
        self._client = await asyncio.to_thread(boto3.client, "s3", **kwargs)
        logger.info("upload_s3_store_started", bucket=self._config.bucket)

    async def stop(self) -> None:
        """Clean up the boto3 client."""
        self._client = None
        logger.info("upload_s3_store_stopped")

    async def put(
        self,
        key: str,
        payload: bytes,
        *,
        content_type: str,
        metadata: dict[str, str],
    ) -> str:
        """Write *payload* under *key*. Returns the ``s3://`` URI."""
        if not self._config.bucket:
            raise MissingBucketError("S3 bucket is not configured")
        assert self._client is not None, "S3 client not started"

        await asyncio.to_thread(
            self._client.put_object,
            Bucket=self._config.bucket,
            Key=key,
            Body=payload,
            ContentType=content_type,
            Metadata=metadata,
        )
        uri = f"s3://{self._config.bucket}/{key}"
        logger.debug("upload_object_stored", uri=uri, size=len(payload))
        return uri


# ------------------------------------------------------------------
# Key construction
# ------------------------------------------------------------------


def safe_key(value: str | None) -> str:
    """Make a client-supplied value safe for use as one S3 key segment."""
    return re.sub(r"[^a-zA-Z0-9._-]", "_", (value or "").strip())[:MAX_KEY_SEGMENT]


def dated_key(prefix: str, serial: str, received_at: datetime, filename: str) -> str:
    """``{prefix}/{serial}/{YYYY/MM/DD}/{filename}`` with unsafe characters replaced."""
    date_path = received_at.strftime("%Y/%m/%d")
    return f"{prefix}/{safe_key(serial)}/{date_path}/{safe_key(filename)}"
