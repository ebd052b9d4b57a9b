"""authbridge - rate limiting and session-cookie bridging for auth endpoints."""

__version__ = "0.1.0"
