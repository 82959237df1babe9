"""
Handbook API — FastAPI endpoints.

Serves the current directory snapshot and a liveness report. The snapshot
cache is created here (or injected) and shared through app.state; handlers
never parse the source themselves.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from handbook_kernel.api.middleware import install_middleware
from handbook_kernel.models.config import ServerConfig
from handbook_kernel.models.errors import LoadError
from handbook_kernel.models.view import HandbookResponse, HealthStatus
from handbook_kernel.snapshot_cache.cache import SnapshotCache
from handbook_kernel.source.oracle import SourceFreshnessOracle
from handbook_kernel.source.workbook import WorkbookReader

logger = logging.getLogger(__name__)

HANDBOOK_PATH = "/api/handbook"
HEALTH_PATH = "/health"

MSG_LOAD_FAILED = "Failed to load handbook data."
MSG_INTERNAL_ERROR = "Internal server error."


def build_snapshot_cache(config: ServerConfig) -> SnapshotCache:
    return SnapshotCache(
        oracle=SourceFreshnessOracle(config.source_file),
        reader=WorkbookReader(config.people_sheet, config.rooms_sheet),
        reload_failure_policy=config.reload_failure_policy,
    )


def create_app(
    config: ServerConfig,
    snapshot_cache: Optional[SnapshotCache] = None,
    preload: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    cache = snapshot_cache or build_snapshot_cache(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Handbook API starting (environment=%s)", config.environment)
        if preload:
            if not cache.oracle.exists():
                logger.warning("Handbook source %s not found; starting empty", cache.oracle.path)
            else:
                try:
                    cache.get_snapshot()
                except LoadError as e:
                    logger.error("Preload failed: %s", e)
        yield

    app = FastAPI(
        title="Handbook API",
        description="Corporate handbook — staff and rooms directory",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.snapshot_cache = cache
    app.state.started_at = time.monotonic()

    install_middleware(app, config)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error("Unhandled error on %s", request.url.path, exc_info=exc)
        body = HandbookResponse(status="error", message=MSG_INTERNAL_ERROR)
        return JSONResponse(status_code=500, content=body.to_wire())

    @app.get(HEALTH_PATH)
    def health():
        """Liveness and cache state."""
        report = HealthStatus(
            uptime=round(time.monotonic() - app.state.started_at, 3),
            cache_status=cache.status,
        )
        return report.to_wire()

    @app.get(HANDBOOK_PATH)
    def get_handbook():
        """Current directory snapshot."""
        try:
            snapshot = cache.get_snapshot()
        except LoadError as e:
            logger.error("Handbook request failed: %s", e)
            body = HandbookResponse(status="error", message=MSG_LOAD_FAILED)
            return JSONResponse(status_code=500, content=body.to_wire())
        return HandbookResponse(status="success", data=snapshot).to_wire()

    return app
