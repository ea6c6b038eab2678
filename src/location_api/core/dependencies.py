"""FastAPI dependency injection for identity, client context and the location service."""

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from location_api.core.config import Settings, get_settings
from location_api.core.security import subject_from_token
from location_api.lib.errors import AuthenticationRequired
from location_api.services.location_service import ClientContext, LocationService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> str:
    """Resolve the acting user id from the bearer JWT ``sub`` claim.

    Args:
        credentials: The bearer credentials, if any were sent.
        settings: Application settings.

    Returns:
        The authenticated user id.

    Raises:
        AuthenticationRequired: If the token is missing, invalid or has no subject.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired("Missing bearer token")
    user_id = subject_from_token(credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm)
    if user_id is None:
        logger.debug("Rejected invalid or expired bearer token")
        raise AuthenticationRequired("Invalid bearer token")
    return user_id


def get_location_service(request: Request) -> LocationService:
    """Return the LocationService built during application startup.

    Raises:
        RuntimeError: If the application lifespan has not run.
    """
    service = getattr(request.app.state, "location_service", None)
    if service is None:
        msg = "Location service not initialized. Is the application lifespan running?"
        raise RuntimeError(msg)
    return service


def get_client_context(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ClientContext:
    """Capture client IP and user agent for the search audit log."""
    from location_api.api.middleware import get_client_ip

    return ClientContext(
        ip_address=get_client_ip(request, settings.trusted_proxy_header_list),
        user_agent=request.headers.get("user-agent"),
    )
