# main.py
"""Main application with store mirroring and background push cleanup"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api import file_channel
from api.endpoints import router
from config import settings
from core.exceptions import (
    CreditInsightError, ExtractionFailure, FormatError, InvariantViolation,
    NotFoundError, SyncUnavailable
)
from database.session import async_engine, create_tables
from services.async_processor import background_tasks
from services.factory import get_sync_bridge
from services.logger_config import setup_logging

setup_logging()
logger = logging.getLogger(settings.LOGGER_NAME)

# Most specific first: AnalysisInProgress is an InvariantViolation
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (FormatError, 400),
    (InvariantViolation, 409),
    (ExtractionFailure, 502),
    (SyncUnavailable, 503),
]


def status_code_for(error: CreditInsightError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


async def domain_error_handler(request: Request, exc: CreditInsightError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "errorCode": exc.error_code.value},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting application...")

    # Database initialization
    await create_tables(async_engine)
    logger.info("Database initialized")

    bridge = get_sync_bridge()
    if bridge is not None:
        await bridge.pull_all()
        logger.info(f"Companion file mirror enabled ({settings.SYNC_CHANNEL})")

    logger.info("Services initialized")
    yield

    # Let pending mirror pushes land before shutdown
    logger.info(f"Waiting for {background_tasks.pending} background tasks...")
    await background_tasks.drain()
    await async_engine.dispose()

    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_TITLE,
        version=settings.APP_VERSION,
        lifespan=lifespan
    )
    app.add_exception_handler(CreditInsightError, domain_error_handler)
    app.include_router(router)
    if settings.SERVE_FILE_CHANNEL:
        app.include_router(file_channel.router)
    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
