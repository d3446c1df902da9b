"""Tests for acquisuite_ingest.service (UploadIngestService)."""

from __future__ import annotations

import asyncio
import os
import signal
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tests.conftest import BOUNDARY, LOG_BYTES, build_multipart, build_upload

from acquisuite_ingest.config import IngestConfig, S3Config
from acquisuite_ingest.s3 import MissingBucketError, UploadStoreError
from acquisuite_ingest.service import UploadIngestService

RECEIVED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)

EXPECTED_METADATA = {
    "serial": "12345",
    "filetime": "2025-06-01 12:00:00",
    "loopname": "Main",
    "source": "acquisuite",
}


def _fake_put(key: str, payload: bytes, **kwargs) -> str:
    return f"s3://test-bucket/{key}"


@pytest.fixture
def service(ingest_config: IngestConfig) -> UploadIngestService:
    service = UploadIngestService(ingest_config)
    service._store = AsyncMock()
    service._store.put = AsyncMock(side_effect=_fake_put)
    return service


class TestUploadIngestServiceInit:
    def test_initial_state(self, ingest_config: IngestConfig):
        service = UploadIngestService(ingest_config)
        assert service.uploads_stored == 0
        assert service.uploads_skipped == 0
        assert service.uploads_failed == 0
        assert service.is_ready is False
        assert service.config is ingest_config

    def test_shutdown_sets_event(self, ingest_config: IngestConfig):
        service = UploadIngestService(ingest_config)
        service.shutdown()
        assert service._shutdown_event.is_set()


class TestIngestLogFile:
    @pytest.mark.asyncio
    async def test_stores_log_file(self, service: UploadIngestService, upload_body: bytes):
        result = await service.ingest(upload_body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.stored is True
        assert result.serial == "12345"
        assert result.uris == ["s3://test-bucket/log-gz/12345/2025/06/01/a.log.gz"]
        service._store.put.assert_awaited_once_with(
            "log-gz/12345/2025/06/01/a.log.gz",
            LOG_BYTES,
            content_type="application/gzip",
            metadata=EXPECTED_METADATA,
        )
        assert service.uploads_stored == 1

    @pytest.mark.asyncio
    async def test_missing_log_file_is_skipped(self, service: UploadIngestService):
        body = build_upload(log_bytes=None)

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.stored is False
        assert result.skipped_reason == "no_log_file"
        service._store.put.assert_not_awaited()
        assert service.uploads_skipped == 1
        assert service.uploads_stored == 0

    @pytest.mark.asyncio
    async def test_unknown_serial(self, service: UploadIngestService):
        body = build_upload(serial=None)

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.serial == "unknown_serial"
        assert result.uris[0] == "s3://test-bucket/log-gz/unknown_serial/2025/06/01/a.log.gz"

    @pytest.mark.asyncio
    async def test_unsafe_serial_and_filename(self, service: UploadIngestService):
        body = build_upload(serial="AS 01/02", log_filename="C:/logs/mb 001.log.gz")

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.uris[0] == "s3://test-bucket/log-gz/AS_01_02/2025/06/01/mb_001.log.gz"

    @pytest.mark.asyncio
    async def test_log_file_without_filename_uses_filetime(self, service: UploadIngestService):
        body = build_upload(log_filename=None)

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.uris[0] == (
            "s3://test-bucket/log-gz/12345/2025/06/01/2025-06-01_12_00_00.log.gz"
        )

    @pytest.mark.asyncio
    async def test_log_file_without_filename_or_filetime(self, service: UploadIngestService):
        body = build_upload(log_filename=None, filetime="")

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.uris[0] == "s3://test-bucket/log-gz/12345/2025/06/01/20250601T120000Z.log.gz"

    @pytest.mark.asyncio
    async def test_non_ascii_metadata_replaced(self, service: UploadIngestService):
        body = build_upload(loopname="Bâtiment")

        await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        metadata = service._store.put.call_args.kwargs["metadata"]
        assert metadata["loopname"] == "B?timent"

    @pytest.mark.asyncio
    async def test_custom_log_field(self, ingest_config: IngestConfig):
        config = ingest_config.model_copy(update={"log_field": "DATAFILE"})
        service = UploadIngestService(config)
        service._store = AsyncMock()
        service._store.put = AsyncMock(side_effect=_fake_put)
        body = build_upload(log_bytes=None, extra=[("DATAFILE", "d.log.gz", b"\x1f\x8b")])

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.uris == ["s3://test-bucket/log-gz/12345/2025/06/01/d.log.gz"]


class TestIngestSecondaryParts:
    @pytest.mark.asyncio
    async def test_status_and_other_parts(self, service: UploadIngestService):
        body = build_upload(extra=[
            ("STATUS", "status.txt", b"online\n"),
            ("CONFIG", "modbus.ini", b"[modbus]\n"),
        ])

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.uris == [
            "s3://test-bucket/log-gz/12345/2025/06/01/a.log.gz",
            "s3://test-bucket/status/12345/2025/06/01/status.txt",
            "s3://test-bucket/attachments/12345/2025/06/01/modbus.ini",
        ]
        status_call = service._store.put.await_args_list[1]
        assert status_call.args == ("status/12345/2025/06/01/status.txt", b"online\n")
        assert status_call.kwargs["content_type"] == "text/plain"
        assert status_call.kwargs["metadata"] == {**EXPECTED_METADATA, "field": "STATUS"}
        other_call = service._store.put.await_args_list[2]
        assert other_call.kwargs["content_type"] == "application/octet-stream"
        assert service.uploads_stored == 1

    @pytest.mark.asyncio
    async def test_secondary_failure_keeps_upload_stored(self, service: UploadIngestService):
        def put(key: str, payload: bytes, **kwargs) -> str:
            if key.startswith("status/"):
                raise Exception("S3 down")
            return _fake_put(key, payload)

        service._store.put = AsyncMock(side_effect=put)
        body = build_upload(extra=[
            ("STATUS", "status.txt", b"online\n"),
            ("CONFIG", "modbus.ini", b"[modbus]\n"),
        ])

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert result.stored is True
        assert result.uris == [
            "s3://test-bucket/log-gz/12345/2025/06/01/a.log.gz",
            "s3://test-bucket/attachments/12345/2025/06/01/modbus.ini",
        ]
        assert service.uploads_stored == 1
        assert service.uploads_failed == 0

    @pytest.mark.asyncio
    async def test_secondary_parts_disabled(self, ingest_config: IngestConfig):
        config = ingest_config.model_copy(update={"store_secondary_parts": False})
        service = UploadIngestService(config)
        service._store = AsyncMock()
        service._store.put = AsyncMock(side_effect=_fake_put)
        body = build_upload(extra=[("STATUS", "status.txt", b"online\n")])

        result = await service.ingest(body, BOUNDARY, received_at=RECEIVED_AT)

        assert len(result.uris) == 1
        service._store.put.assert_awaited_once()


class TestIngestLookupModes:
    LOG_WITH_DECOY = b'\x1f\x8b name="SERIALNUMBER" \x00'

    def _decoy_body(self) -> bytes:
        # Log file declared before the serial number field
        return build_multipart([
            ("LOGFILE", "a.log.gz", self.LOG_WITH_DECOY),
            ("SERIALNUMBER", None, b"12345"),
        ])

    @pytest.mark.asyncio
    async def test_unanchored_lookup_is_misled_by_content(self, service: UploadIngestService):
        result = await service.ingest(self._decoy_body(), BOUNDARY, received_at=RECEIVED_AT)
        assert result.serial != "12345"

    @pytest.mark.asyncio
    async def test_anchored_lookup(self, ingest_config: IngestConfig):
        config = ingest_config.model_copy(update={"anchored_lookup": True})
        service = UploadIngestService(config)
        service._store = AsyncMock()
        service._store.put = AsyncMock(side_effect=_fake_put)

        result = await service.ingest(self._decoy_body(), BOUNDARY, received_at=RECEIVED_AT)

        assert result.serial == "12345"
        assert result.uris[0] == "s3://test-bucket/log-gz/12345/2025/06/01/a.log.gz"
        assert service._store.put.await_args_list[0].args[1] == self.LOG_WITH_DECOY


class TestIngestFailures:
    @pytest.mark.asyncio
    async def test_store_error(self, service: UploadIngestService, upload_body: bytes):
        service._store.put = AsyncMock(side_effect=Exception("S3 down"))

        with pytest.raises(UploadStoreError, match="S3 down"):
            await service.ingest(upload_body, BOUNDARY, received_at=RECEIVED_AT)

        assert service.uploads_failed == 1
        assert service.uploads_stored == 0

    @pytest.mark.asyncio
    async def test_missing_bucket(self, upload_body: bytes):
        service = UploadIngestService(IngestConfig(api_key="k", s3=S3Config(bucket=None)))

        with pytest.raises(MissingBucketError):
            await service.ingest(upload_body, BOUNDARY, received_at=RECEIVED_AT)

        assert service.uploads_failed == 1


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_sigterm_triggers_shutdown(self, ingest_config: IngestConfig):
        service = UploadIngestService(ingest_config)
        service._install_signal_handlers()

        os.kill(os.getpid(), signal.SIGTERM)
        # The loop needs an I/O poll cycle to process the signal self-pipe
        await asyncio.sleep(0.05)

        assert service._shutdown_event.is_set()

    @pytest.mark.asyncio
    async def test_run_starts_and_stops_store(self, service: UploadIngestService):
        server = MagicMock()
        server.serve = AsyncMock()

        with patch("acquisuite_ingest.service.uvicorn.Server", return_value=server):
            service.shutdown()
            await service.run()

        service._store.start.assert_awaited_once()
        service._store.stop.assert_awaited_once()
        server.serve.assert_awaited_once()
        assert server.should_exit is True
