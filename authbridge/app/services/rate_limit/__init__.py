"""In-memory rate limiting for authentication endpoints."""

from authbridge.app.services.rate_limit.limiter import (
    BaseRateLimiter,
    BetterAuthRateLimiter,
    LegacyAuthRateLimiter,
)
from authbridge.app.services.rate_limit.models import (
    DEFAULT_MAX,
    DEFAULT_MESSAGE,
    DEFAULT_SKIP_ENDPOINTS,
    DEFAULT_STRICT_ENDPOINTS,
    DEFAULT_WINDOW_SECONDS,
    RateLimitConfig,
    RateLimitEntry,
    RateLimitResult,
)
from authbridge.app.services.rate_limit.store import RateLimitStore

__all__ = [
    "BaseRateLimiter",
    "BetterAuthRateLimiter",
    "LegacyAuthRateLimiter",
    "RateLimitConfig",
    "RateLimitEntry",
    "RateLimitResult",
    "RateLimitStore",
    "DEFAULT_MAX",
    "DEFAULT_MESSAGE",
    "DEFAULT_SKIP_ENDPOINTS",
    "DEFAULT_STRICT_ENDPOINTS",
    "DEFAULT_WINDOW_SECONDS",
]
