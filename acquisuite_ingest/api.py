"""HTTP surface for device uploads, plus health and readiness probes."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .auth import is_authorized, provided_key
from .s3 import MissingBucketError, UploadStoreError

if TYPE_CHECKING:
    from .service import UploadIngestService

logger = structlog.get_logger()

# Body the AcquiSuite upload client expects on success
SUCCESS_BODY = "SUCCESS - OK\r\n"
UPLOAD_METHODS = ("POST", "PUT")
ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_BOUNDARY_RE = re.compile(r"boundary=([^\s;]+)", re.IGNORECASE)


def success_ack() -> Response:
    return Response(content=SUCCESS_BODY, status_code=200, media_type="text/html")


def plain(message: str, status_code: int) -> PlainTextResponse:
    return PlainTextResponse(message, status_code=status_code)


def parse_boundary(content_type: str) -> str | None:
    """Return the ``boundary=`` parameter of a Content-Type header, unquoted."""
    match = _BOUNDARY_RE.search(content_type)
    if not match:
        return None
    return match.group(1).strip('"') or None


def create_app(service: UploadIngestService) -> FastAPI:
    """Build the upload app around *service*.

    Every path accepts uploads; ``/health`` and ``/ready`` are answered
    first for GET requests.
    """
    app = FastAPI(title="acquisuite-ingest", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({
            "service": "acquisuite-ingest",
            "uploads_stored": service.uploads_stored,
            "uploads_skipped": service.uploads_skipped,
            "uploads_failed": service.uploads_failed,
            "anchored_lookup": service.config.anchored_lookup,
        })

    @app.get("/ready")
    async def ready() -> JSONResponse:
        is_ready = service.is_ready
        return JSONResponse(
            {"ready": is_ready},
            status_code=200 if is_ready else 503,
        )

    @app.api_route("/{path:path}", methods=ALL_METHODS)
    async def upload(request: Request, path: str) -> Response:
        # Devices probe the URL with GET before uploading; always acknowledge
        if request.method not in UPLOAD_METHODS:
            return success_ack()

        config = service.config
        expected = config.api_key.get_secret_value() if config.api_key else ""
        if not expected:
            logger.error("api_key_not_configured")
            return plain("MISSING_API_KEY", 500)

        if not is_authorized(provided_key(request.query_params, request.headers), expected):
            logger.warning("upload_forbidden", path=f"/{path}", client=_client_host(request))
            return plain("FORBIDDEN", 403)

        content_type = request.headers.get("content-type", "")
        if "multipart/form-data" not in content_type.lower():
            logger.info("upload_not_multipart", content_type=content_type)
            return success_ack()

        boundary = parse_boundary(content_type)
        if boundary is None:
            logger.warning("upload_missing_boundary", content_type=content_type)
            return success_ack()

        body = await request.body()
        if config.max_body_bytes and len(body) > config.max_body_bytes:
            logger.warning("upload_too_large", size=len(body), limit=config.max_body_bytes)
            return plain("PAYLOAD_TOO_LARGE", 413)

        try:
            await service.ingest(body, boundary)
        except MissingBucketError:
            return plain("MISSING_BUCKET", 500)
        except UploadStoreError:
            return plain("STORAGE_ERROR", 502)

        return success_ack()

    return app


def _client_host(request: Request) -> str | None:
    return request.client.host if request.client else None
