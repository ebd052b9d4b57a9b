"""Custom exceptions for the authbridge application."""


class AuthBridgeException(Exception):
    """Base class for authbridge exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str = "Authentication bridge error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to API response format."""
        return {
            "error": self.error,
            "message": self.message,
            "statusCode": self.status_code,
        }


class RateLimitExceededError(AuthBridgeException):
    """Raised by guards when a client exceeded its request budget.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429
    error = "Too Many Requests"

    def __init__(self, message: str, retry_after: int = 0, remaining: int | float = 0):
        self.retry_after = retry_after
        self.remaining = remaining
        super().__init__(message)

    def to_response(self) -> dict:
        body = super().to_response()
        body["remaining"] = self.remaining
        body["retryAfter"] = self.retry_after
        return body


class ChallengeStorageNotInitializedError(AuthBridgeException):
    """Raised when writing to a challenge store that is disabled.

    Maps to HTTP 503 Service Unavailable.
    """
    status_code = 503
    error = "Service Unavailable"

    def __init__(self, detail: str = "Challenge storage not initialized"):
        super().__init__(detail)


class ChallengeStorageError(AuthBridgeException):
    """Raised when the database rejects a challenge mapping operation.

    Maps to HTTP 500 Internal Server Error.
    """
    status_code = 500


class CookieSigningError(AuthBridgeException):
    """Raised when a cookie must be signed but no secret is configured."""
    status_code = 500


class UpstreamAuthError(AuthBridgeException):
    """Raised when the upstream auth server cannot be reached.

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error = "Authentication handler error"
