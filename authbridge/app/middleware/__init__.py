"""Middleware package for authbridge."""

from authbridge.app.middleware.auth_guard import LegacyAuthRateLimitGuard
from authbridge.app.middleware.rate_limit import BetterAuthRateLimitMiddleware, rate_limit_headers
from authbridge.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "BetterAuthRateLimitMiddleware",
    "LegacyAuthRateLimitGuard",
    "RequestIdMiddleware",
    "get_request_id",
    "rate_limit_headers",
]
