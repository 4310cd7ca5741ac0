"""FastAPI application entry point for Stockroom."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockroom import __version__
from stockroom.config import LoggingConfig, settings
from stockroom.database import close_db, init_db
from stockroom.services.csv_import import ImportService
from stockroom.services.record_store import MongoRecordStore

logger = logging.getLogger(__name__)


def configure_logging(config: LoggingConfig) -> None:
    """Configure root logging from the logging config section."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.level),
        format=config.format,
        handlers=handlers,
        force=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings.logging)

    await init_db()
    app.state.import_service = ImportService(
        store=MongoRecordStore(),
        config=settings.csv_import,
    )
    logger.info("%s %s started", settings.app_name, __version__)

    yield

    app.state.import_service.reset_session()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Bulk CSV import for inventory records",
    version=__version__,
    lifespan=lifespan,
)

# Only allow origins from the whitelist; empty list means same-origin only
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        max_age=600,
    )


@app.get("/health", tags=["Health"])
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(
        content={
            "status": "healthy",
            "version": __version__,
            "app_name": settings.app_name,
        }
    )


from stockroom.routers import import_router

app.include_router(import_router.router, prefix="/api/import", tags=["Import"])
