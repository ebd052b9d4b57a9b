"""Composition root for the authentication components.

Every component receives its configuration by constructor; nothing reads
settings globally. ``create_app`` builds one AuthComponents per
application and starts/stops it from the lifespan.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from authbridge.app.core.config import Settings
from authbridge.app.core.logging import get_logger
from authbridge.app.services.challenge_store import ChallengeMappingStore
from authbridge.app.services.cleanup import CleanupScheduler
from authbridge.app.services.cookies import CookieTranslator, create_cookie_helper
from authbridge.app.services.passkey_bridge import PasskeyChallengeBridge
from authbridge.app.services.rate_limit import (
    BetterAuthRateLimiter,
    LegacyAuthRateLimiter,
    RateLimitStore,
)

logger = get_logger(__name__)


@dataclass
class AuthComponents:
    """The wired set of authentication components."""
    settings: Settings
    legacy_rate_limiter: LegacyAuthRateLimiter
    better_auth_rate_limiter: BetterAuthRateLimiter
    cookies: CookieTranslator
    challenge_store: ChallengeMappingStore
    passkey_bridge: PasskeyChallengeBridge
    scheduler: CleanupScheduler

    @classmethod
    def from_settings(cls, settings: Settings, engine: Optional[AsyncEngine] = None) -> "AuthComponents":
        """Build and configure all components.

        Args:
            settings: Application settings
            engine: Engine for the challenge store; None disables it
        """
        legacy_limiter = LegacyAuthRateLimiter(RateLimitStore(settings.rate_limit_max_entries))
        legacy_limiter.configure(settings.get("rate_limit"))

        better_auth_limiter = BetterAuthRateLimiter(RateLimitStore(settings.rate_limit_max_entries))
        better_auth_limiter.configure(settings.get("better_auth.rate_limit"))

        secret = settings.better_auth_secret or None
        cookies = create_cookie_helper(
            settings.better_auth_base_path,
            legacy_cookie_enabled=settings.legacy_auth_enabled,
            secret=secret,
            secure=settings.is_production,
        )

        challenge_store = ChallengeMappingStore(engine, settings.get("better_auth.passkey"))

        scheduler = CleanupScheduler(settings.rate_limit_cleanup_interval_seconds)
        scheduler.add_job(legacy_limiter.purge_expired, name="legacy_auth_rate_limit")
        scheduler.add_job(better_auth_limiter.purge_expired, name="better_auth_rate_limit")
        scheduler.add_job(challenge_store.purge_expired, name="challenge_mappings")

        return cls(
            settings=settings,
            legacy_rate_limiter=legacy_limiter,
            better_auth_rate_limiter=better_auth_limiter,
            cookies=cookies,
            challenge_store=challenge_store,
            passkey_bridge=PasskeyChallengeBridge(challenge_store, secret),
            scheduler=scheduler,
        )

    async def start(self) -> None:
        """Initialize storage and start the cleanup scheduler."""
        if not self.settings.better_auth_secret:
            logger.warning("BETTER_AUTH_SECRET is not set - session cookies will not be signed")
        await self.challenge_store.initialize()
        await self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.stop()
