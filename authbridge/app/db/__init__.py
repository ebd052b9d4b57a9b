"""Database package for authbridge.

This package provides:
- The WebAuthn challenge mapping model
- Async engine and session management
"""

from authbridge.app.db.async_session import (
    create_engine_from_settings,
    create_session_maker,
    dispose_engine,
    get_async_session,
    init_models,
)
from authbridge.app.db.base import Base
from authbridge.app.db.models import CHALLENGE_TYPES, ChallengeMapping

__all__ = [
    "Base",
    "ChallengeMapping",
    "CHALLENGE_TYPES",
    "create_engine_from_settings",
    "create_session_maker",
    "dispose_engine",
    "get_async_session",
    "init_models",
]
