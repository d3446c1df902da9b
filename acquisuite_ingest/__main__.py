"""Entry point for the upload ingest service."""

from __future__ import annotations

import asyncio

from .config import IngestConfig
from .logging import setup_logging
from .service import UploadIngestService


def main() -> None:
    config = IngestConfig()
    setup_logging(json=config.log_json, level=config.log_level)
    service = UploadIngestService(config)
    asyncio.run(service.run())


if __name__ == "__main__":
    main()
