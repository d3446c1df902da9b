"""UploadIngestService: extract device uploads and persist them to S3."""

from __future__ import annotations

import asyncio
import signal
from datetime import UTC, datetime

import structlog
import uvicorn

from .api import create_app
from .config import IngestConfig
from .models import IngestResult
from .multipart import (
    FilePart,
    PartIndex,
    PartKind,
    classify_part,
    extract_all_file_parts,
    extract_file_part,
    extract_text_field,
)
from .s3 import MissingBucketError, UploadS3Store, UploadStoreError, dated_key, safe_key

logger = structlog.get_logger()

SERIAL_FIELD = "SERIALNUMBER"
FILETIME_FIELD = "FILETIME"
LOOPNAME_FIELD = "LOOPNAME"
UNKNOWN_SERIAL = "unknown_serial"
SOURCE = "acquisuite"

LOG_CONTENT_TYPE = "application/gzip"
STATUS_CONTENT_TYPE = "text/plain"
OTHER_CONTENT_TYPE = "application/octet-stream"


class UploadIngestService:
    """Turn raw multipart uploads into S3 objects and serve the upload endpoint."""

    def __init__(self, config: IngestConfig) -> None:
        self._config = config
        self._store = UploadS3Store(config.s3)
        self._shutdown_event = asyncio.Event()

        self._uploads_stored: int = 0
        self._uploads_skipped: int = 0
        self._uploads_failed: int = 0

    # ------------------------------------------------------------------
    # Public properties (used by health checks)
    # ------------------------------------------------------------------

    @property
    def config(self) -> IngestConfig:
        return self._config

    @property
    def uploads_stored(self) -> int:
        return self._uploads_stored

    @property
    def uploads_skipped(self) -> int:
        return self._uploads_skipped

    @property
    def uploads_failed(self) -> int:
        return self._uploads_failed

    @property
    def is_ready(self) -> bool:
        return self._store.is_started

    # ------------------------------------------------------------------
    # Ingest
    # ------------------------------------------------------------------

    async def ingest(
        self,
        body: bytes,
        boundary: str,
        *,
        received_at: datetime | None = None,
    ) -> IngestResult:
        """Extract the log file and its attributes from *body* and store them.

        A body without the log file part is skipped, not rejected.
        Raises :class:`MissingBucketError` or :class:`UploadStoreError` when
        the payload cannot be persisted.
        """
        received_at = received_at or datetime.now(UTC)

        if self._config.anchored_lookup:
            index = PartIndex.build(body, boundary)
            log_part = index.file_part(self._config.log_field)
            text_field = index.text_field
        else:
            log_part = extract_file_part(body, boundary, self._config.log_field)

            def text_field(name: str) -> str:
                return extract_text_field(body, boundary, name)

        if log_part is None:
            self._uploads_skipped += 1
            logger.info("upload_skipped", reason="no_log_file", size=len(body))
            return IngestResult(stored=False, skipped_reason="no_log_file")

        serial = text_field(SERIAL_FIELD) or UNKNOWN_SERIAL
        filetime = text_field(FILETIME_FIELD)
        loopname = text_field(LOOPNAME_FIELD)
        metadata = {
            "serial": serial,
            "filetime": filetime,
            "loopname": loopname,
            "source": SOURCE,
        }

        try:
            uris = [await self._store_log_file(log_part, serial, received_at, filetime, metadata)]
            if self._config.store_secondary_parts:
                uris.extend(await self._store_secondary_parts(body, boundary, serial, received_at, metadata))
        except MissingBucketError:
            self._uploads_failed += 1
            logger.error("upload_bucket_missing", serial=serial)
            raise
        except Exception as exc:
            self._uploads_failed += 1
            logger.exception("upload_store_failed", serial=serial)
            raise UploadStoreError(str(exc)) from exc

        self._uploads_stored += 1
        logger.info(
            "upload_stored",
            serial=serial,
            filetime=filetime,
            loopname=loopname,
            objects=len(uris),
            log_uri=uris[0],
        )
        return IngestResult(stored=True, serial=serial, uris=uris)

    async def _store_log_file(
        self,
        log_part: FilePart,
        serial: str,
        received_at: datetime,
        filetime: str,
        metadata: dict[str, str],
    ) -> str:
        filename = log_part.filename
        if not filename:
            stem = safe_key(filetime) or received_at.strftime("%Y%m%dT%H%M%SZ")
            filename = f"{stem}.log.gz"
        key = dated_key(self._config.s3.log_prefix, serial, received_at, filename)
        return await self._store.put(
            key,
            log_part.payload,
            content_type=LOG_CONTENT_TYPE,
            metadata=_ascii_metadata(metadata),
        )

    async def _store_secondary_parts(
        self,
        body: bytes,
        boundary: str,
        serial: str,
        received_at: datetime,
        metadata: dict[str, str],
    ) -> list[str]:
        uris: list[str] = []
        for part in extract_all_file_parts(body, boundary):
            if part.field_name == self._config.log_field:
                continue
            if classify_part(part.field_name, part.filename) is PartKind.STATUS:
                prefix, content_type = self._config.s3.status_prefix, STATUS_CONTENT_TYPE
            else:
                prefix, content_type = self._config.s3.attachments_prefix, OTHER_CONTENT_TYPE
            key = dated_key(prefix, serial, received_at, part.filename)
            try:
                uri = await self._store.put(
                    key,
                    part.payload,
                    content_type=content_type,
                    metadata=_ascii_metadata({**metadata, "field": part.field_name or ""}),
                )
            except Exception:
                # The log file is already stored; the upload still succeeds
                logger.exception("secondary_part_store_failed", serial=serial, key=key)
                continue
            uris.append(uri)
        return uris

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Start the S3 store and serve the upload endpoint until shutdown."""
        self._install_signal_handlers()
        await self._store.start()
        logger.info("ingest_service_started", port=self._config.port)

        server = uvicorn.Server(
            uvicorn.Config(
                create_app(self),
                host=self._config.host,
                port=self._config.port,
                log_config=None,
            )
        )
        serve_task = asyncio.create_task(server.serve())
        try:
            await self._shutdown_event.wait()
            server.should_exit = True
            await serve_task
        finally:
            await self._store.stop()
            logger.info("ingest_service_stopped")

    def shutdown(self) -> None:
        self._shutdown_event.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def _handle(sig: signal.Signals) -> None:
            logger.info("shutdown_signal_received", signal=sig.name)
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, _handle, sig)


def _ascii_metadata(metadata: dict[str, str]) -> dict[str, str]:
    """S3 user metadata must be ASCII; replace anything else with ``?``."""
    return {
        key: value.encode("ascii", errors="replace").decode("ascii")
        for key, value in metadata.items()
    }
