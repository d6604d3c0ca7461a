"""
Demo API service: weather and environment endpoints behind an API key or
B2C bearer scopes, plus a B2C sign-in that calls the weather API as the user.

    uvicorn webapi.app.main:app --reload --port 8081
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Dict

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.sessions import SessionMiddleware

from . import routes
from .auth.routes import auth_router
from .config import get_settings
from .downstream import downstream_router


APP_VERSION = "1.0.0"


def setup_logging(log_level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("webapi.main")

    app.state.http_client = httpx.AsyncClient(timeout=10.0)
    logger.info(
        "Demo API started",
        extra={"environment": settings.ENVIRONMENT_NAME, "policy": settings.AZURE_AD.SIGN_IN_POLICY},
    )

    yield

    await app.state.http_client.aclose()
    logger.info("Demo API shutdown complete")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(title="Demo API", version=APP_VERSION, lifespan=lifespan)

    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        same_site="lax",
        https_only=settings.ENVIRONMENT_NAME.lower() != "development",
    )
    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

    # Register routers
    app.include_router(routes.router)
    app.include_router(auth_router)
    app.include_router(downstream_router)

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        return {
            "status": "ok",
            "service": "webapi",
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
        logger = logging.getLogger("webapi.main")
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
