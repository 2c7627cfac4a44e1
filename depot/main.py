"""Depot FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from depot import __version__
from depot.config import get_settings
from depot.db import close_db, init_db
from depot.errors import DepotError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    settings = get_settings()
    logger.info("depot.startup", version=__version__)
    Path(settings.storage.root_path).mkdir(parents=True, exist_ok=True)
    await init_db()

    yield

    # Shutdown
    logger.info("depot.shutdown")
    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Depot",
        description="Maven artifact repository with token-scoped access",
        version=__version__,
        lifespan=lifespan,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # Error handler
    @app.exception_handler(DepotError)
    async def depot_error_handler(request: Request, exc: DepotError):
        """Handle Depot errors with consistent format."""
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id),
        )

    # Health check
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    # Import and register API routers
    from depot.api.v1 import router as api_router

    app.include_router(api_router, prefix="/api")

    return app


# Create default app instance
app = create_app()
