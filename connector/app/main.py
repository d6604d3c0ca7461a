"""
FastAPI API Connector Application Factory
==========================================

Entry point for the service that Entra External ID / Azure AD B2C user flows
call as an API connector.

Routers:
    - /login, /ciam, /ciamtest : API connector endpoints
    - /health                  : Health check endpoint
    - /                        : Redirects to the interactive docs

Running the Service:
    Development:
        uvicorn connector.app.main:app --reload --host 0.0.0.0 --port 8080

    With custom log level:
        LOG_LEVEL=DEBUG uvicorn connector.app.main:app --reload
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse

from connector.app.ciam.routes import ciam_router
from connector.app.config import APP_VERSION, get_settings
from connector.app.db.connection import (
    create_engine_from_settings,
    create_session_factory,
    init_models,
)


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
        - Configure logging
        - Create the async database engine and ensure the Logs table
        - Create the shared outbound HTTP client

    Shutdown:
        - Close the HTTP client and dispose of the engine
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("connector.main")

    engine = create_engine_from_settings(settings)
    await init_models(engine)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    app.state.http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    logger.info(
        "API connector service started",
        extra={
            "service": "connector",
            "version": APP_VERSION,
            "ropc_flow": settings.ROPC_FLOW,
        },
    )

    yield

    logger.info("Shutting down API connector service")
    await app.state.http_client.aclose()
    await engine.dispose()


def create_app() -> FastAPI:
    """
    Application factory function.

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="CIAM API Connector",
        description="API connector and Graph user-management endpoints for CIAM user flows",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(ciam_router)

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": "connector",
            "version": APP_VERSION,
        }

    @app.get("/", include_in_schema=False)
    async def root() -> RedirectResponse:
        return RedirectResponse(url="/docs")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Log unhandled errors and return a standardized error response.
        """
        logger = logging.getLogger("connector.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "http_method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "connector.app.main:app",
        host="0.0.0.0",
        port=8080,
        reload=True,
        log_level=settings.LOG_LEVEL.lower(),
    )
