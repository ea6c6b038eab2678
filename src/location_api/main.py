"""FastAPI application factory.

Creates the FastAPI app with lifespan management, envelope exception
handlers, and OpenAPI metadata.
"""

import asyncio
import contextlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from location_api.core.config import get_settings
from location_api.core.database import dispose_engine, get_session_factory, init_engine
from location_api.core.logging import setup_logging
from location_api.lib.errors import LocationError, LocationValidationError, ThrottledError
from location_api.schemas.common import ApiResponse

_GENERIC_ERRORS = ["Please try again later"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: engine, location service and sweep loop."""
    from location_api.core.background import location_sweep_loop
    from location_api.services.location_service import build_location_service

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir, json_logs=settings.log_json)
    init_engine(settings.database_url, echo=False, schema=settings.database_schema)

    service = build_location_service(settings, get_session_factory())
    app.state.location_service = service

    sweep_task = asyncio.create_task(location_sweep_loop(service, settings.rate_limit_sweep_interval_seconds))

    yield

    sweep_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweep_task

    app.state.location_service = None
    await dispose_engine()


def _envelope(status_code: int, message: str, errors: list[str] | None) -> JSONResponse:
    body = ApiResponse[None].fail(message, errors)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Convert every error into the response envelope.

    Args:
        app: The FastAPI application.
    """

    @app.exception_handler(LocationError)
    async def location_error_handler(request: Request, exc: LocationError) -> JSONResponse:
        if isinstance(exc, ThrottledError):
            logger.warning(f"Throttled {request.url.path} for {exc.identity}: {exc.detail}")
        elif isinstance(exc, LocationValidationError):
            logger.debug(f"Rejected {request.url.path}: {exc.detail}")
        elif exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
        return _envelope(exc.status_code, exc.public_message, exc.public_errors)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("query", "body", "path"))
            message = error.get("msg", "invalid value")
            errors.append(f"{field}: {message}" if field else message)
        return _envelope(400, "Invalid request parameters", errors or ["Invalid request parameters"])

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.url.path}")
        return _envelope(500, "An unexpected error occurred", _GENERIC_ERRORS)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Location API",
        description="Privacy-preserving location search and proximity for a tools-rental marketplace",
        version="0.1.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Register middleware and routers
    from location_api.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router())

    return app
