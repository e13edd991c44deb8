"""FastAPI application factory for the LedgerSync server"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ledgersync import __version__
from ledgersync.bootstrap import Services, build_services
from ledgersync.core.config import Settings, load_settings
from ledgersync.utils.exceptions import LedgerSyncError, SyncConflict
from ledgersync.utils.logger import configure_logging, get_logger

from .auth_routes import router as auth_router
from .sync_routes import router as sync_router

logger = get_logger(__name__)


def _error_response(exc: LedgerSyncError) -> Response:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if not exc.expose_reason:
        return Response(status_code=exc.status_code, headers=headers)
    content = {"error": exc.reason}
    if isinstance(exc, SyncConflict):
        content["records"] = exc.record_ids
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerSyncError)
    async def ledgersync_error_handler(request: Request, exc: LedgerSyncError) -> Response:
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return JSONResponse(status_code=500, content={"error": "server_error"})
        logger.info(
            "Request rejected",
            path=request.url.path,
            status=exc.status_code,
            reason=exc.reason,
        )
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
        return JSONResponse(status_code=400, content={"error": "invalid_input"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> Response:
        logger.exception("Unhandled error", path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "server_error"})


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the app. Settings come from the environment unless given;
    services are built from settings unless given (tests inject both).
    """
    settings = settings or load_settings()
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        file_path=settings.logging.file_path,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )

    app = FastAPI(
        title="LedgerSync",
        description="Auth and incremental transaction sync for the finance tracker",
        version=__version__,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    origins = settings.cors_origins if settings.environment == "production" else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _install_error_handlers(app)

    app.include_router(auth_router)
    app.include_router(sync_router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    logger.info("LedgerSync app created", data_dir=str(settings.data_dir), environment=settings.environment)
    return app
