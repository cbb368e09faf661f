"""
FastAPI application wiring the recognizer, canvas and program routes.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .canvas.routes import router as canvas_router
from .config import Settings, get_settings
from .db.base import init_database
from .log_config import configure_logging
from .programs.routes import router as program_router
from .recognizer.routes import router as recognizer_router
from .services import (
    AppServices,
    build_services,
    get_services,
    start_services,
    stop_services,
)

logger = structlog.get_logger()


def _version() -> str:
    try:
        return importlib.metadata.version("evolving-app")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("application_starting", app=settings.app_name, environment=settings.environment)

    try:
        services: Optional[AppServices] = getattr(app.state, "services", None)
        if services is None:
            init_database()
            services = build_services(settings)
            app.state.services = services

        await start_services(services)
    except Exception as e:
        logger.error("application_start_failed", error=str(e))
        raise

    yield

    logger.info("application_stopping")
    await stop_services(services)
    logger.info("application_stopped")


def create_app(
    settings: Optional[Settings] = None, services: Optional[AppServices] = None
) -> FastAPI:
    """Build the FastAPI application.

    ``services`` is used as-is when given; otherwise the lifespan builds them
    from ``settings`` against the configured database.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Digit recognizer, pixel canvas and evolving web app pipeline",
        version=_version(),
        lifespan=lifespan,
    )
    app.state.settings = settings
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
        max_age=86400,
    )

    app.include_router(recognizer_router)
    app.include_router(canvas_router)
    app.include_router(program_router)

    @app.get("/healthz", tags=["system"])
    def healthz() -> Dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version", tags=["system"])
    def version() -> Dict[str, str]:
        """Return the version of the application."""
        return {"version": _version()}

    @app.get("/status", tags=["system"])
    async def get_system_status(
        services: AppServices = Depends(get_services),
    ) -> Dict[str, Any]:
        """Get comprehensive system status."""
        return {
            "recognizer": services.recognizer.get_status(),
            "coordinator": services.coordinator.get_status(),
            "canvas": {
                "width": services.board.width,
                "height": services.board.height,
                "pixels": len(services.board.snapshot()["pixels"]),
            },
            "settings": {
                "environment": services.settings.environment,
                "debug": services.settings.debug,
                "generator_backend": services.generator.name,
            },
        }

    return app


app = create_app()
