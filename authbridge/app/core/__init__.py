"""Core utilities for the authbridge application."""

from authbridge.app.core.config import Settings, get_settings
from authbridge.app.core.logging import get_logger, setup_logging
from authbridge.app.core.masking import mask_email, mask_identifier, mask_ip

__all__ = [
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
    "mask_email",
    "mask_identifier",
    "mask_ip",
]
