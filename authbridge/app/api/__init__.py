"""API endpoints package for authbridge."""

from authbridge.app.api.auth_proxy import build_auth_router

__all__ = [
    "build_auth_router",
]
