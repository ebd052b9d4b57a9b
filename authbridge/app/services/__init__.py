"""Services package for authbridge.

This package provides:
- In-memory rate limiting for auth endpoints
- Session cookie translation
- WebAuthn challenge mapping storage and the passkey bridge
- Periodic cleanup of expired state
"""

from authbridge.app.services.challenge_store import ChallengeMappingStore
from authbridge.app.services.cleanup import CleanupScheduler
from authbridge.app.services.container import AuthComponents
from authbridge.app.services.cookies import CookieHelperConfig, CookieTranslator, create_cookie_helper
from authbridge.app.services.passkey_bridge import PasskeyChallengeBridge
from authbridge.app.services.rate_limit import (
    BetterAuthRateLimiter,
    LegacyAuthRateLimiter,
    RateLimitConfig,
    RateLimitResult,
    RateLimitStore,
)

__all__ = [
    "AuthComponents",
    "BetterAuthRateLimiter",
    "ChallengeMappingStore",
    "CleanupScheduler",
    "CookieHelperConfig",
    "CookieTranslator",
    "LegacyAuthRateLimiter",
    "PasskeyChallengeBridge",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimitStore",
    "create_cookie_helper",
]
