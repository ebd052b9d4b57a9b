import re
from functools import lru_cache
from typing import Any, Mapping

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_MISSING = object()

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Dotted names that resolve to a differently named field
_FIELD_ALIASES = {
    "rate_limit": "auth_rate_limit",
}


def _to_snake_case(segment: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", segment).lower()


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    Structured feature blocks (rate limits, passkey) are read as JSON, e.g.
    ``BETTER_AUTH_RATE_LIMIT='{"max": 20, "windowSeconds": 120}'`` or
    ``AUTH_RATE_LIMIT=true``.
    """

    # Runtime environment - "production" enables secure cookies
    environment: str = "development"
    debug: bool = False

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Database used for WebAuthn challenge mappings
    database_url: str = "sqlite+aiosqlite:///./authbridge.db"
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True

    # HTTP client settings (upstream auth server)
    httpx_connect_timeout: float = 5.0
    httpx_read_timeout: float = 30.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Better-Auth integration
    better_auth_enabled: bool = True
    better_auth_base_path: str = "/iam"
    better_auth_secret: str = ""
    better_auth_upstream_url: str = "http://localhost:3000"
    better_auth_cookies: bool = True  # Move session tokens from body to cookies

    # Legacy (JWT) auth - also enables the plain "token" cookie
    legacy_auth_enabled: bool = False

    # Rate limiting (presence implies enabled)
    auth_rate_limit: bool | dict[str, Any] | None = None
    better_auth_rate_limit: bool | dict[str, Any] | None = None
    rate_limit_cleanup_interval_seconds: int = 300
    rate_limit_max_entries: int = 10000

    # Take the client IP from X-Forwarded-For / X-Real-IP. Only safe behind a
    # reverse proxy that overwrites these headers.
    trust_proxy_headers: bool = True

    # Passkey / WebAuthn (None = enabled with database challenge storage)
    better_auth_passkey: bool | dict[str, Any] | None = None

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production mode."""
        return self.environment.strip().lower() == "production"

    @field_validator("better_auth_base_path")
    @classmethod
    def normalize_base_path(cls, v: str) -> str:
        """Ensure the base path has a single leading slash and no trailing one."""
        v = v.strip().strip("/")
        return f"/{v}" if v else ""

    @field_validator("rate_limit_cleanup_interval_seconds")
    @classmethod
    def validate_cleanup_interval(cls, v: int) -> int:
        """Validate the cleanup interval is reasonable."""
        if v < 1:
            raise ValueError("rate_limit_cleanup_interval_seconds must be at least 1")
        if v > 3600:
            raise ValueError("rate_limit_cleanup_interval_seconds should not exceed 1 hour")
        return v

    @field_validator("rate_limit_max_entries", "httpx_max_connections")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate size limits are positive."""
        if v < 1:
            raise ValueError("size limits must be at least 1")
        return v

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a setting by dotted key.

        The longest prefix of the key that names a field is resolved first,
        the remaining segments descend into mapping values. Segments may be
        snake_case or camelCase, and ``rate_limit`` names the legacy
        ``auth_rate_limit`` block::

            settings.get("better_auth.rate_limit")      # whole block
            settings.get("betterAuth.rateLimit.max")    # single value
            settings.get("rateLimit.windowSeconds")     # legacy block

        Args:
            key: Dotted key, segments joined by "."
            default: Value returned when the key cannot be resolved

        Returns:
            The resolved value or ``default``
        """
        raw_parts = [p for p in key.split(".") if p]
        parts = [_to_snake_case(p) for p in raw_parts]
        fields = type(self).model_fields
        for end in range(len(parts), 0, -1):
            name = "_".join(parts[:end])
            name = _FIELD_ALIASES.get(name, name)
            if name not in fields:
                continue
            value: Any = getattr(self, name)
            for raw_part, part in zip(raw_parts[end:], parts[end:]):
                if not isinstance(value, Mapping):
                    return default
                value = value.get(raw_part, value.get(part, _MISSING))
                if value is _MISSING:
                    return default
            return value
        return default

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process settings, loaded once on first use."""
    return Settings()
