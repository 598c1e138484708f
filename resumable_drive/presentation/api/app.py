"""
FastAPI application factory and configuration.

This module creates the FastAPI application serving the upload command
surface and registers its routes and middleware.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ...application.startup import ApplicationStartup
from ...infrastructure.config.models import ApplicationConfig
from .routers import commands, health, uploads

logger = logging.getLogger(__name__)


def create_app(startup: ApplicationStartup, config: ApplicationConfig,
               manage_lifecycle: bool = False) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        startup: Application startup manager owning the components
        config: Application configuration
        manage_lifecycle: Start and stop the components with the app;
            leave False when the caller runs the startup sequence itself

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Application starting up...")
        if manage_lifecycle:
            await startup.start_application()
        try:
            yield
        finally:
            if manage_lifecycle:
                await startup.stop_application()
            logger.info("Application shutting down...")

    app = FastAPI(
        title=config.name,
        version=config.version,
        description="Resumable chunked uploads with pause, resume and restart recovery",
        debug=config.debug,
        lifespan=lifespan
    )

    app.state.startup = startup
    app.state.config = config

    _configure_middleware(app, config)
    _register_routes(app)

    logger.info(f"FastAPI application created: {config.name} v{config.version}")
    return app


def _configure_middleware(app: FastAPI, config: ApplicationConfig) -> None:
    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.debug("CORS middleware configured")


def _register_routes(app: FastAPI) -> None:
    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(uploads.router)
    app.include_router(commands.router)

    @app.get("/", tags=["root"])
    async def root() -> Dict[str, Any]:
        """Root endpoint with basic application information."""
        return {
            "name": app.title,
            "version": app.version,
            "status": "running",
            "docs_url": "/docs",
            "health_url": "/health"
        }

    logger.debug("Routes registered")
