"""Rate limit guard for the legacy authentication endpoints."""

from typing import Callable, Optional

from fastapi import Request

from authbridge.app.core.web import get_client_ip
from authbridge.app.exceptions import RateLimitExceededError
from authbridge.app.services.rate_limit import LegacyAuthRateLimiter, RateLimitResult


class LegacyAuthRateLimitGuard:
    """FastAPI dependency that enforces LegacyAuthRateLimiter.

    Usage:
        guard = LegacyAuthRateLimitGuard(lambda: components.legacy_rate_limiter)

        @router.post("/auth/signin", dependencies=[Depends(guard)])
        async def sign_in(...): ...

    The endpoint name defaults to the last path segment.

    Raises:
        RateLimitExceededError: When the client exceeded its budget
    """

    def __init__(
        self,
        limiter_provider: Callable[[], LegacyAuthRateLimiter],
        endpoint: Optional[str] = None,
        trust_proxy_headers: bool = True,
    ):
        self._limiter_provider = limiter_provider
        self._endpoint = endpoint
        self._trust_proxy_headers = trust_proxy_headers

    def _endpoint_name(self, request: Request) -> str:
        if self._endpoint:
            return self._endpoint
        segments = [s for s in request.url.path.split("/") if s]
        return segments[-1] if segments else "unknown"

    async def __call__(self, request: Request) -> Optional[RateLimitResult]:
        limiter = self._limiter_provider()
        if not limiter.is_enabled():
            return None

        result = limiter.check(
            get_client_ip(request, self._trust_proxy_headers),
            self._endpoint_name(request),
        )
        if not result.allowed:
            raise RateLimitExceededError(
                limiter.get_message(),
                retry_after=result.reset_in,
                remaining=int(result.remaining),
            )
        return result
