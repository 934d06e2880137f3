"""FastAPI main application with app factory and route configuration."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .deps import get_settings
from .routes import agents, chat, creations, sessions, tasks
from .schemas import HealthResponse
from .services.eden_client import (
    get_eden_client,
    initialize_eden_client,
    shutdown_eden_client,
)
from .utils.logging import configure_request_logging, log_startup_info, setup_logging

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events.

    Args:
        app: FastAPI application instance
    """
    # Startup
    try:
        settings = get_settings()

        setup_logging(settings)
        log_startup_info(settings)

        initialize_eden_client(settings)
        logger.info("Eden client initialized")

        logger.info("Application startup completed successfully")

    except Exception as e:
        logger.error(f"Error during application startup: {str(e)}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Eden portal")

    try:
        await shutdown_eden_client()
        logger.info("Application shutdown completed successfully")

    except Exception as e:
        logger.error(f"Error during application shutdown: {str(e)}")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="Eden Portal",
        description="Web proxy for the Eden creative-AI platform: generation tasks, agent chat sessions and the creations feed",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.middleware("http")(configure_request_logging())

    # Custom exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions with proper logging."""
        logger.warning(
            f"HTTP {exc.status_code}: {exc.detail} for {request.method} {request.url}"
        )

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
                "path": str(request.url),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        """Report malformed requests as 400 with the validation details."""
        logger.warning(
            f"Validation error for {request.method} {request.url}: {exc.errors()}"
        )

        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Validation error",
                "details": [
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg", ""), "type": error.get("type", "")}
                    for error in exc.errors()
                ],
                "status_code": 400,
                "path": str(request.url),
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(
            f"Unexpected error for {request.method} {request.url}: {str(exc)}",
            exc_info=True,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "status_code": 500,
                "path": str(request.url),
            },
        )

    @app.get("/healthz", tags=["health"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint for monitoring and load balancers."""
        settings = get_settings()
        client = get_eden_client()

        health = HealthResponse(
            version=APP_VERSION,
            services={
                "eden_client": "initialized" if client else "not_initialized",
                "eden_api_key": "configured" if settings.eden_api_key else "missing",
            },
        )

        if not client:
            health.status = "degraded"

        return health

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "Eden Portal API",
            "version": APP_VERSION,
            "docs_url": "/docs",
            "health_check": "/healthz",
            "endpoints": {
                "agents": "/api/agents",
                "chat": "/api/chat",
                "creations": "/api/creations",
                "sessions": "/api/sessions",
                "tasks": "/api/tasks",
            },
        }

    app.include_router(agents.router, prefix="/api/agents")
    app.include_router(chat.router, prefix="/api/chat")
    app.include_router(creations.router, prefix="/api/creations")
    app.include_router(sessions.router, prefix="/api/sessions")
    app.include_router(tasks.router, prefix="/api/tasks")

    logger.info("FastAPI application created and configured")

    return app


# Create the app instance
app = create_app()


def run():
    """Serve the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "eden_portal.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
