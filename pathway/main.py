"""
Pathway - FastAPI Application

Main entry point for the application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pathway.core.config import settings
from pathway.core.database import close_db, get_session_maker
from pathway.core.errors import HTTP_STATUS_BY_KIND, EngineError
from pathway.api.v1 import router as api_v1_router
from pathway.services import bootstrap_service


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from LOG_LEVEL."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    configure_logging()
    logger.info("Starting Pathway...")

    if settings.BOOTSTRAP_ADMIN:
        session_maker = get_session_maker()
        async with session_maker() as db:
            await bootstrap_service.ensure_admin_user(db)

    yield

    # Shutdown
    logger.info("Shutting down Pathway...")
    await close_db()


# Create FastAPI application
app = FastAPI(
    title="Pathway",
    description="Sequential video learning path with quiz-gated progression.",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    """Map service-layer errors to HTTP responses."""
    status_code = HTTP_STATUS_BY_KIND.get(exc.kind, 400)
    if status_code >= 409:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.kind.value} {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.kind.value},
    )


# Include API routers
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Health status and environment info.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": "0.1.0",
    }
