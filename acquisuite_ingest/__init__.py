"""AcquiSuite ingest service: pull log files out of device multipart uploads."""

from .config import IngestConfig, S3Config
from .logging import setup_logging
from .service import UploadIngestService

__all__ = [
    "IngestConfig",
    "S3Config",
    "UploadIngestService",
    "setup_logging",
]
