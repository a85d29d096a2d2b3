"""
Shade Party Mode - FastAPI Backend

Main application entry point with the REST API.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .errors import PartyError
from .routers import admin_router, health_router, party_router
from .tasks import cleanup_task
from . import __version__

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()

    # Startup
    logger.info("Starting %s v%s", settings.app_name, __version__)
    logger.info("  Storage Type: %s", settings.storage_type)
    logger.info("  CORS Origins: %s", settings.cors_origins)

    # Initialize database if using SQL storage
    if settings.storage_type == "sql":
        from .db.connection import init_db
        logger.info("  Database URL: %s", settings.database_url)
        await init_db()
        logger.info("  Database initialized")

    if settings.cleanup_task_enabled:
        cleanup_task.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    cleanup_task.stop()
    if settings.storage_type == "sql":
        from .db.connection import close_db
        await close_db()
        logger.info("  Database connection closed")


def create_app() -> FastAPI:
    """Create the FastAPI app with routers, CORS and error handlers."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Backend API for Shade Party Mode sessions and leaderboards",
        version=__version__,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PartyError)
    async def party_error_handler(request: Request, exc: PartyError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "code": "VALIDATION",
                "message": "Invalid request",
                "context": {"errors": jsonable_encoder(exc.errors())},
            },
        )

    # Include routers
    app.include_router(health_router, prefix="/api")
    app.include_router(party_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API info."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/api/health",
        }

    return app


# For running with uvicorn directly
app = create_app()
