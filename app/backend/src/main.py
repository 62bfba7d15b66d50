"""Entrypoint for the FastAPI application."""

import os
from dotenv import load_dotenv

# Load .env locally only (hosted environments inject env vars)
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import health, memorials, uploads
from .core.config import get_settings
from .core.errors import MemorialError
from .core.logging import configure_logging

LOGGER = structlog.get_logger(__name__)

CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "X-Edit-Key"]
CORS_MAX_AGE = 86400


async def memorial_error_handler(request: Request, exc: MemorialError) -> JSONResponse:
    log = LOGGER.error if exc.status_code >= 500 else LOGGER.info
    log(
        "request_failed",
        method=request.method,
        path=request.url.path,
        status=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    else:
        message = "Invalid request."
    LOGGER.info("request_invalid", method=request.method, path=request.url.path, error=message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


def preflight_headers(request: Request, allowed_origins: list[str]) -> dict[str, str]:
    """CORS headers for an OPTIONS answer, permissive on requested headers."""

    headers = {
        "Access-Control-Allow-Methods": ", ".join(CORS_ALLOW_METHODS),
        "Access-Control-Allow-Headers": request.headers.get(
            "access-control-request-headers"
        )
        or ", ".join(CORS_ALLOW_HEADERS),
        "Access-Control-Max-Age": str(CORS_MAX_AGE),
    }
    origin = request.headers.get("origin")
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"
    return headers


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="Pet Memorials", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )

    # Registered after CORSMiddleware so it runs first for every OPTIONS.
    @app.middleware("http")
    async def answer_options(request: Request, call_next):  # type: ignore[no-untyped-def]
        if request.method != "OPTIONS":
            return await call_next(request)
        return Response(
            status_code=status.HTTP_204_NO_CONTENT,
            headers=preflight_headers(request, settings.allowed_origins),
        )

    app.add_exception_handler(MemorialError, memorial_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health.router, prefix="/api")
    app.include_router(uploads.router, prefix="/api")
    app.include_router(memorials.router, prefix="/api")

    return app


app = create_app()
