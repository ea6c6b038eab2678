"""HTTP middleware: CORS, location response headers and the coarse per-IP limit."""

from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from location_api.core.config import Settings
from location_api.lib.errors import ThrottledError
from location_api.lib.ratelimit.base import BaseRateLimiter, RateDecision
from location_api.lib.ratelimit.memory import InMemoryRateLimiter
from location_api.schemas.common import ApiResponse

_DEFAULT_TRUSTED_HEADERS = ["CF-Connecting-IP", "X-Forwarded-For", "X-Real-IP"]
_LOCATION_RESPONSE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Cache-Control": "no-store",
}


def get_client_ip(request: Request, trusted_headers: list[str] | None = None) -> str:
    """Resolve the caller's IP for the per-IP limit and the search audit log.

    The first non-empty trusted header wins. X-Forwarded-For contributes its
    leftmost entry; without any header the socket peer address is used.

    Args:
        request: The incoming request.
        trusted_headers: Header names in priority order. Defaults to
            CF-Connecting-IP, X-Forwarded-For, X-Real-IP.

    Returns:
        The client IP, or "unknown" when the request has no peer address.
    """
    for header in trusted_headers if trusted_headers is not None else _DEFAULT_TRUSTED_HEADERS:
        value = request.headers.get(header, "").strip()
        if not value:
            continue
        if header.lower() == "x-forwarded-for":
            # "client, proxy1, proxy2"
            return value.split(",")[0].strip()
        return value
    return request.client.host if request.client else "unknown"


def setup_cors(app: FastAPI, settings: Settings) -> None:
    """Allow read-only cross-origin calls from the configured marketplace origins.

    Args:
        app: The FastAPI application.
        settings: Application settings.
    """
    options: dict[str, Any] = {
        "allow_credentials": True,
        "allow_methods": ["GET", "OPTIONS"],
        "allow_headers": ["Authorization", "Content-Type"],
    }
    if settings.cors_origin_list:
        options["allow_origins"] = settings.cors_origin_list
    if settings.cors_origin_regex.strip():
        options["allow_origin_regex"] = settings.cors_origin_regex.strip()
    app.add_middleware(CORSMiddleware, **options)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp hardening headers on every response and forbid caching of location data."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers.update(_LOCATION_RESPONSE_HEADERS)
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Coarse per-IP rate limiting in front of the per-user limits.

    Uses proxy headers to identify real client IPs behind reverse proxies.
    Rejections use the same envelope and message as the per-user limits.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 200,
        trusted_proxy_headers: list[str] | None = None,
        limiter: BaseRateLimiter | None = None,
    ) -> None:
        super().__init__(app)
        self.trusted_proxy_headers = trusted_proxy_headers
        self.limiter = limiter or InMemoryRateLimiter("ip", requests_per_minute)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Consume one token for the caller IP, answering 429 in the envelope when exhausted."""
        client_ip = get_client_ip(request, self.trusted_proxy_headers)
        decision = await self.limiter.check_and_consume(f"ip:{client_ip}")
        if decision is RateDecision.EXCEEDED:
            body = ApiResponse[None].fail(ThrottledError.public_message, ["Please wait before making more requests"])
            return JSONResponse(status_code=429, content=body.model_dump())
        return await call_next(request)
