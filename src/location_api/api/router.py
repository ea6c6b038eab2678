"""Root API router with /api prefix and middleware registration."""

from fastapi import APIRouter, FastAPI

from location_api.api.middleware import RateLimitMiddleware, SecurityHeadersMiddleware, setup_cors
from location_api.core.config import Settings

API_PREFIX = "/api"


def create_router() -> APIRouter:
    """Create the root API router with all sub-routers included.

    Returns:
        Configured API router.
    """
    from location_api.api.v1.location import location_router

    root_router = APIRouter(prefix=API_PREFIX)
    root_router.include_router(location_router)
    return root_router


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware on the FastAPI app.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    setup_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_minute=settings.rate_limit_per_minute,
        trusted_proxy_headers=settings.trusted_proxy_header_list,
    )
