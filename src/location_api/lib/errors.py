"""Typed errors raised by the location engine.

Every error carries the HTTP status it maps to and the client-safe message
and error list that the API envelope exposes. Internal detail (heuristic
names, provider bodies) stays on the exception for logging and never reaches
``public_errors``.
"""


class LocationError(Exception):
    """Base class for all location engine errors."""

    status_code: int = 500
    public_message: str = "An unexpected error occurred"

    def __init__(self, detail: str | None = None, errors: list[str] | None = None) -> None:
        self.detail = detail or self.public_message
        self.public_errors = errors if errors is not None else ["Please try again later"]
        super().__init__(self.detail)


class LocationValidationError(LocationError):
    """Input rejected before any I/O."""

    status_code = 400
    public_message = "Invalid request parameters"

    def __init__(self, detail: str | None = None, errors: list[str] | None = None) -> None:
        super().__init__(detail, errors if errors is not None else [detail or self.public_message])


class InvalidCoordinates(LocationValidationError):
    """Latitude/longitude outside the valid range or not finite."""

    public_message = "Invalid coordinates"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            detail or self.public_message,
            [
                "Latitude must be between -90 and 90",
                "Longitude must be between -180 and 180",
            ],
        )


class InvalidRadius(LocationValidationError):
    """Search radius outside the supported bounds."""

    public_message = "Invalid radius"

    def __init__(self, min_km: float = 1, max_km: float = 100) -> None:
        super().__init__(
            self.public_message,
            [f"Radius must be between {min_km:g} and {max_km:g} kilometers"],
        )


class InvalidResultLimit(LocationValidationError):
    """Requested result count outside the endpoint's bounds."""

    public_message = "Invalid maxResults parameter"

    def __init__(self, max_results: int) -> None:
        super().__init__(self.public_message, [f"maxResults must be between 1 and {max_results}"])


class InvalidQuery(LocationValidationError):
    """Free-text query missing, too short, or too long."""

    public_message = "Search query is required"


class AuthenticationRequired(LocationError):
    """No valid identity could be resolved for the request."""

    status_code = 401
    public_message = "User authentication required"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail, ["Valid user authentication is required for location searches"])


class ThrottledError(LocationError):
    """Base for throttling outcomes. Both subclasses share one public face."""

    status_code = 429
    public_message = "Too many requests"

    def __init__(self, identity: str, detail: str | None = None) -> None:
        self.identity = identity
        super().__init__(detail, ["Please wait before making more location requests"])


class RateLimitExceeded(ThrottledError):
    """Identity crossed its sliding-window threshold."""


class SuspiciousPattern(ThrottledError):
    """Identity flagged by the pattern detector.

    ``reason`` is for server-side logs and the audit trail only.
    """

    def __init__(self, identity: str, reason: str = "") -> None:
        self.reason = reason
        super().__init__(identity, f"suspicious pattern: {reason}" if reason else None)


class GeocodingUnavailable(LocationError):
    """The geocoding provider failed after bounded retries."""

    status_code = 503
    public_message = "Location lookup is temporarily unavailable"


class SpatialStoreUnavailable(LocationError):
    """The spatial data store could not be queried."""

    status_code = 500
    public_message = "An error occurred while searching nearby listings"
