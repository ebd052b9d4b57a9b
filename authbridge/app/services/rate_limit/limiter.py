"""Sliding-window rate limiters for authentication endpoints.

Two variants share one implementation:

- ``LegacyAuthRateLimiter``: flat ``max`` per client and endpoint name
- ``BetterAuthRateLimiter``: skip list, strict endpoints with half the
  limit, and endpoint grouping by path

A request is counted first and then compared against the limit, so the
request that tips a window over the edge is itself rejected.
"""

import math
import time
from typing import Any, Callable, Optional

from authbridge.app.core.logging import get_logger
from authbridge.app.core.masking import mask_ip
from authbridge.app.services.rate_limit.models import RateLimitConfig, RateLimitResult
from authbridge.app.services.rate_limit.store import RateLimitStore

logger = get_logger(__name__)


class BaseRateLimiter:
    """Shared counting logic over a RateLimitStore.

    Disabled until ``configure`` is called with a value that enables it.
    """

    name = "rate_limit"

    def __init__(
        self,
        store: Optional[RateLimitStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the limiter.

        Args:
            store: Counter store; a private one is created when omitted
            clock: Returns the current time in epoch seconds
        """
        self._store = store if store is not None else RateLimitStore()
        self._clock = clock
        self._config = RateLimitConfig.disabled()

    @property
    def config(self) -> RateLimitConfig:
        return self._config

    @property
    def store(self) -> RateLimitStore:
        return self._store

    def configure(self, config: Any) -> None:
        """Replace the configuration snapshot.

        See ``RateLimitConfig.from_value`` for the accepted values.
        """
        self._config = RateLimitConfig.from_value(config, self.name)
        if self._config.enabled:
            logger.info(
                f"{self.name} enabled: {self._config.max} requests "
                f"per {self._config.window_seconds}s"
            )
        else:
            logger.debug(f"{self.name} disabled")

    def get_message(self) -> str:
        return self._config.message

    def is_enabled(self) -> bool:
        return self._config.enabled

    def reset(self, client_id: str) -> None:
        """Drop every counter for ``client_id`` (admin override, tests)."""
        self._store.delete_prefix(f"{client_id}:")

    def clear(self) -> None:
        self._store.clear()

    def get_stats(self) -> dict[str, Any]:
        return {"active_entries": len(self._store), "enabled": self._config.enabled}

    def purge_expired(self) -> int:
        """Remove counters whose window has ended; used by the cleanup job."""
        removed = self._store.purge_expired(self._clock())
        if removed:
            logger.debug(f"{self.name}: purged {removed} expired entries")
        return removed

    def _count(self, client_id: str, bucket: str, limit: int, label: str) -> RateLimitResult:
        now = self._clock()
        window = self._config.window_seconds
        entry, fresh = self._store.hit(f"{client_id}:{bucket}", now, window)

        if fresh:
            return RateLimitResult(
                allowed=True,
                current=1,
                limit=limit,
                remaining=limit - 1,
                reset_in=window,
            )

        allowed = entry.count <= limit
        if not allowed:
            logger.warning(
                f"Rate limit exceeded for IP {mask_ip(client_id)} on {label}: "
                f"{entry.count}/{limit}"
            )

        return RateLimitResult(
            allowed=allowed,
            current=entry.count,
            limit=limit,
            remaining=max(0, limit - entry.count),
            reset_in=max(0, math.ceil(entry.reset_time - now)),
        )


class LegacyAuthRateLimiter(BaseRateLimiter):
    """Flat rate limiter for the legacy sign-in/sign-up endpoints.

    Example:
        limiter.configure({"max": 10, "window_seconds": 60})
        result = limiter.check("192.168.1.1", "signIn")
        if not result.allowed:
            raise RateLimitExceededError(limiter.get_message())
    """

    name = "legacy_auth_rate_limit"

    def check(self, client_id: str, endpoint: str) -> RateLimitResult:
        """Count a request for ``client_id`` on ``endpoint``."""
        if not self._config.enabled:
            return RateLimitResult.unlimited()
        return self._count(client_id, endpoint, self._config.max, endpoint)


class BetterAuthRateLimiter(BaseRateLimiter):
    """Tiered rate limiter for the Better-Auth endpoints.

    - Skip-list endpoints are never limited
    - Strict endpoints (sign-in, sign-up, ...) get ``ceil(max / 2)``
    - Counters are grouped per client and endpoint category
    """

    name = "better_auth_rate_limit"

    def check(self, client_id: str, path: str) -> RateLimitResult:
        """Count a request for ``client_id`` on ``path``.

        Args:
            client_id: Client IP address
            path: Request path relative to the auth base path
        """
        if not self._config.enabled:
            return RateLimitResult.unlimited()

        clean_path = path.split("?", 1)[0]
        if self._should_skip(clean_path):
            return RateLimitResult.unlimited()

        return self._count(
            client_id,
            self.normalize_endpoint(clean_path),
            self._get_limit(clean_path),
            clean_path,
        )

    @staticmethod
    def normalize_endpoint(path: str) -> str:
        """Map a path to its counter bucket.

        All OAuth callbacks share one bucket; anything else is keyed by its
        last path segment, or ``root``.
        """
        clean_path = path.split("?", 1)[0]
        if "/callback/" in clean_path:
            return "callback"
        segments = [segment for segment in clean_path.split("/") if segment]
        return segments[-1] if segments else "root"

    def _should_skip(self, path: str) -> bool:
        return any(_matches(path, skip) for skip in self._config.skip_endpoints)

    def _get_limit(self, path: str) -> int:
        if any(_matches(path, strict) for strict in self._config.strict_endpoints):
            return self._config.strict_max
        return self._config.max


def _matches(path: str, pattern: str) -> bool:
    # Exact and suffix matches are substring matches too
    return pattern in path
