"""FastAPI application factory and lifespan management."""

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from waffle_intel.api.dependencies import (
    get_settings,
    init_services,
    shutdown_services,
)
from waffle_intel.api.middleware.error_handler import error_handler_middleware
from waffle_intel.api.middleware.logging import LoggingMiddleware
from waffle_intel.api.openapi.routes import (
    captions,
    catchup,
    conversation,
    health,
    search,
    webhooks,
)
from waffle_intel.commons.settings.models import Settings
from waffle_intel.commons.telemetry import build_formatter, configure_logging


def _log_level(settings: Settings) -> str:
    return settings.telemetry.log_level or settings.app.log_level


def _setup_logging() -> None:
    """Configure logging for the application.

    Runs at import time so our formatters are in place before uvicorn starts.
    """
    settings = get_settings()
    log_level = _log_level(settings)

    configure_logging(
        level=log_level,
        format_type=settings.telemetry.log_format,
        logger_name="waffle_intel",
        service=settings.app.name,
    )

    # Root logger as fallback for third-party libraries
    logging.getLogger().setLevel(getattr(logging, log_level.upper()))


def _configure_uvicorn_logging() -> None:
    """Make uvicorn's loggers use our format.

    Called during lifespan, when uvicorn's handlers exist.
    """
    settings = get_settings()
    level = getattr(logging, _log_level(settings).upper())
    formatter = build_formatter(settings.telemetry.log_format, settings.app.name)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setFormatter(formatter)
            handler.setLevel(level)
        if not logger.handlers:
            stream_handler = logging.StreamHandler(sys.stdout)
            stream_handler.setFormatter(formatter)
            stream_handler.setLevel(level)
            logger.addHandler(stream_handler)
            logger.propagate = False


# Configure logging at module import time
_setup_logging()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Start infrastructure and housekeeping, and tear them down on exit."""
    _configure_uvicorn_logging()

    await init_services(get_settings())

    yield

    await shutdown_services()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.name,
        version=settings.app.version,
        description=(
            "Media intelligence for group video waffles: ingestion, caption "
            "suggestions, semantic search with streamed AI answers, and "
            "group catch-up summaries"
        ),
        docs_url="/docs" if settings.server.docs_enabled else None,
        redoc_url="/redoc" if settings.server.docs_enabled else None,
        openapi_url="/openapi.json" if settings.server.docs_enabled else None,
        lifespan=lifespan,
    )

    _configure_middleware(app, settings)
    _register_routes(app)

    return app


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(LoggingMiddleware)

    # Error handler (as middleware)
    app.middleware("http")(error_handler_middleware)


def _register_routes(app: FastAPI) -> None:
    """Register API routes. The mobile client calls them at the root."""
    app.include_router(health.router, tags=["Health"])
    app.include_router(captions.router, tags=["Captions"])
    app.include_router(conversation.router, tags=["Conversation"])
    app.include_router(search.router, tags=["Search"])
    app.include_router(catchup.router, tags=["Catch-up"])
    app.include_router(webhooks.router, tags=["Webhooks"])


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    server = get_settings().server
    uvicorn.run(
        "waffle_intel.api.main:app",
        host=server.host,
        port=server.port,
        workers=server.workers,
        reload=server.reload,
        log_config=None,
    )
