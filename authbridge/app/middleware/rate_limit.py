"""Rate limiting middleware for the Better-Auth endpoints.

Requests under the Better-Auth base path are counted per client IP and
endpoint category. Rejected requests get HTTP 429 with the configured
message; every limited response carries ``X-RateLimit-*`` headers.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from authbridge.app.core.web import get_client_ip, relative_path
from authbridge.app.services.rate_limit import BetterAuthRateLimiter, RateLimitResult


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard rate limit headers for a limited result."""
    headers = {
        "X-RateLimit-Limit": str(int(result.limit)),
        "X-RateLimit-Remaining": str(int(result.remaining)),
        "X-RateLimit-Reset": str(result.reset_in),
    }
    if not result.allowed:
        headers["Retry-After"] = str(result.reset_in)
    return headers


class BetterAuthRateLimitMiddleware(BaseHTTPMiddleware):
    """Applies BetterAuthRateLimiter to requests under ``base_path``.

    Does nothing when Better-Auth or the limiter is disabled.
    """

    def __init__(
        self,
        app,
        limiter: BetterAuthRateLimiter,
        base_path: str = "/iam",
        enabled: bool = True,
        trust_proxy_headers: bool = True,
    ):
        super().__init__(app)
        self.limiter = limiter
        self.base_path = base_path
        self.enabled = enabled
        self.trust_proxy_headers = trust_proxy_headers

    def _applies_to(self, path: str) -> bool:
        if not self.base_path:
            return True
        return path == self.base_path or path.startswith(f"{self.base_path}/")

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        if not self.enabled or not self.limiter.is_enabled() or not self._applies_to(request.url.path):
            return await call_next(request)

        path = relative_path(request.url.path, self.base_path)
        result = self.limiter.check(get_client_ip(request, self.trust_proxy_headers), path)

        # Skip-list endpoints are unlimited and carry no headers
        headers = {} if result.is_unlimited else rate_limit_headers(result)

        if not result.allowed:
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too Many Requests",
                    "message": self.limiter.get_message(),
                    "retryAfter": result.reset_in,
                    "statusCode": 429,
                },
                headers=headers,
            )

        response = await call_next(request)
        for name, value in headers.items():
            response.headers[name] = value
        return response
