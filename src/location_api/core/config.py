"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
"""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (e.g. postgresql+asyncpg://...)",
    )
    database_schema: str | None = Field(
        default=None,
        description="PostgreSQL schema for isolated environments (e.g., pr_42)",
    )

    @field_validator("database_schema")
    @classmethod
    def validate_database_schema(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not re.match(r"^[a-z_][a-z0-9_]{0,62}$", v):
            msg = "Invalid database_schema: must match ^[a-z_][a-z0-9_]{0,62}$"
            raise ValueError(msg)
        return v

    # JWT
    jwt_secret_key: str = Field(min_length=32, description="Secret key for verifying JWTs (minimum 32 characters)")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        description="Expiration of development tokens minted by the CLI, in minutes",
        gt=0,
    )

    # Geocoding
    geocoder_provider: str = Field(
        default="nominatim",
        description="Geocoding provider name (nominatim or photon)",
    )
    geocoder_timeout: float = Field(
        default=4.0,
        description="Per-attempt geocoder timeout in seconds",
        gt=0,
    )
    geocoder_max_retries: int = Field(
        default=2,
        description="Retries after the first attempt for transient provider failures",
        ge=0,
        le=5,
    )
    geocoder_backoff_base: float = Field(
        default=0.25,
        description="First retry backoff in seconds (doubles per retry)",
        ge=0,
    )
    geocoder_backoff_max: float = Field(
        default=2.0,
        description="Maximum single retry backoff in seconds",
        ge=0,
    )
    geocoder_cache_ttl: float = Field(
        default=300.0,
        description="Seconds identical geocoder lookups are served from cache",
        gt=0,
    )
    geocoder_nominatim_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Nominatim base URL (self-hostable)",
    )
    geocoder_nominatim_email: str = Field(
        default="",
        description="Email for Nominatim usage policy compliance",
    )
    geocoder_photon_base_url: str = Field(
        default="https://photon.komoot.io",
        description="Photon geocoder base URL (self-hostable)",
    )
    geocoder_user_agent: str = Field(
        default="location-api/1.0",
        description="User-Agent sent to geocoding providers",
    )

    @field_validator("geocoder_provider")
    @classmethod
    def validate_geocoder_provider(cls, v: str) -> str:
        return v.strip().lower()

    # Per-identity rate limits (requests per minute)
    rate_limit_search_per_minute: int = Field(default=30, description="Forward geocoding searches per user", gt=0)
    rate_limit_reverse_per_minute: int = Field(default=10, description="Reverse geocoding lookups per user", gt=0)
    rate_limit_proximity_per_minute: int = Field(default=20, description="Nearby tool/bundle searches per user", gt=0)
    rate_limit_idle_ttl_seconds: float = Field(
        default=3600.0,
        description="Idle time after which a rate window or probe history is evicted",
        gt=0,
    )
    rate_limit_sweep_interval_seconds: float = Field(
        default=300.0,
        description="Seconds between background sweeps of limiter state and caches",
        gt=0,
    )

    # Suspicious pattern detection
    pattern_history_seconds: float = Field(default=3600.0, description="Probe history window in seconds", gt=0)
    pattern_block_requests: int = Field(
        default=10,
        description="Requests rejected after an identity is flagged",
        ge=0,
    )
    pattern_min_distance_km: float = Field(
        default=1.0,
        description="Minimum probe separation for triangle and circle detection",
        gt=0,
    )
    pattern_min_points: int = Field(default=3, description="Probes needed before geometric checks run", ge=3)
    pattern_grid_min_points: int = Field(default=6, description="Distinct probes that make a grid sweep", ge=3)
    pattern_grid_span_km: float = Field(default=3.0, description="Maximum extent of a grid sweep", gt=0)
    pattern_grid_burst_seconds: float = Field(default=600.0, description="Time window of a grid sweep", gt=0)
    pattern_small_radius_km: float = Field(
        default=5.0,
        description="Proximity searches at or below this radius count as probes",
        gt=0,
    )

    # Caches
    popular_cache_ttl: float = Field(default=3600.0, description="Popular locations cache TTL in seconds", gt=0)
    suggestions_cache_ttl: float = Field(default=1800.0, description="Suggestions cache TTL in seconds", gt=0)

    # Search audit log
    search_log_enabled: bool = Field(default=True, description="Record location searches in the audit log")
    search_log_retention_days: int = Field(
        default=90,
        description="Days location search logs are retained",
        gt=0,
    )

    # Logging
    log_level: str = Field(default="INFO", description="Minimum Loguru level")
    log_dir: str | None = Field(default=None, description="Directory for a rotating location-api.log file")
    log_json: bool = Field(default=False, description="Serialize every stderr record as JSON")

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )
    cors_origin_regex: str = Field(
        default="",
        description="Regex pattern for allowed CORS origins (e.g. https://.*\\.example\\.com)",
    )

    # API
    rate_limit_per_minute: int = Field(
        default=200,
        description="Maximum API requests per minute per IP address",
        gt=0,
    )
    trusted_proxy_headers: str = Field(
        default="CF-Connecting-IP,X-Forwarded-For,X-Real-IP",
        description="Comma-separated list of HTTP headers to check for real client IP, in priority order",
    )

    @property
    def trusted_proxy_header_list(self) -> list[str]:
        """Parse trusted proxy headers string into a list."""
        if not self.trusted_proxy_headers.strip():
            return []
        return [h.strip() for h in self.trusted_proxy_headers.split(",") if h.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
