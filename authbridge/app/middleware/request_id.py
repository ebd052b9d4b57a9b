"""Request ID middleware.

Adds a unique request ID to each incoming request and binds it, together
with the masked client IP, to the logging context so every log record of
the request can be correlated.
"""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from authbridge.app.core.logging import reset_log_context, set_log_context
from authbridge.app.core.masking import mask_ip
from authbridge.app.core.web import get_client_ip

_MAX_REQUEST_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add a request ID to all requests.

    The request ID is:
    1. Extracted from X-Request-ID header if present
    2. Generated as UUID if not present
    3. Added to request.state for access in endpoints
    4. Returned in X-Request-ID response header
    """

    def __init__(self, app, header_name: str = "X-Request-ID", trust_proxy_headers: bool = True):
        super().__init__(app)
        self.header_name = header_name
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request and add request ID."""
        request_id = request.headers.get(self.header_name, "").strip()
        if not request_id or len(request_id) > _MAX_REQUEST_ID_LENGTH:
            request_id = str(uuid.uuid4())

        request.state.request_id = request_id

        tokens = set_log_context(request_id, mask_ip(get_client_ip(request, self.trust_proxy_headers)))
        try:
            response = await call_next(request)
        finally:
            reset_log_context(tokens)

        response.headers[self.header_name] = request_id
        return response


def get_request_id(request: Request) -> str:
    """Get request ID from request state.

    Args:
        request: FastAPI request object

    Returns:
        Request ID string
    """
    return getattr(request.state, "request_id", "unknown")
