"""Rate limiting data models.

This module contains the dataclasses for rate limit state, results and
configuration, plus the parser that turns raw settings values into a
``RateLimitConfig``.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from authbridge.app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX = 10
DEFAULT_WINDOW_SECONDS = 60
DEFAULT_MESSAGE = "Too many requests, please try again later."
DEFAULT_SKIP_ENDPOINTS = ("/session", "/callback")
DEFAULT_STRICT_ENDPOINTS = ("/sign-in", "/sign-up", "/forgot-password", "/reset-password")

# Accepted spellings for each config field
_KEY_ALIASES = {
    "enabled": ("enabled",),
    "max": ("max",),
    "window_seconds": ("window_seconds", "windowSeconds"),
    "message": ("message",),
    "skip_endpoints": ("skip_endpoints", "skipEndpoints"),
    "strict_endpoints": ("strict_endpoints", "strictEndpoints"),
}


@dataclass
class RateLimitEntry:
    """Request counter for one key and window.

    ``reset_time`` is absolute epoch seconds.
    """
    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    current: int
    limit: float
    remaining: float
    reset_in: int

    @classmethod
    def unlimited(cls) -> "RateLimitResult":
        return cls(allowed=True, current=0, limit=math.inf, remaining=math.inf, reset_in=0)

    @property
    def is_unlimited(self) -> bool:
        return math.isinf(self.limit)


@dataclass(frozen=True)
class RateLimitConfig:
    """Immutable rate limit configuration snapshot.

    Reconfiguring a limiter replaces the whole snapshot; list fields are
    never merged with a previous configuration.
    """
    enabled: bool = False
    max: int = DEFAULT_MAX
    window_seconds: int = DEFAULT_WINDOW_SECONDS
    message: str = DEFAULT_MESSAGE
    skip_endpoints: tuple[str, ...] = field(default=DEFAULT_SKIP_ENDPOINTS)
    strict_endpoints: tuple[str, ...] = field(default=DEFAULT_STRICT_ENDPOINTS)

    @property
    def strict_max(self) -> int:
        """Limit applied to strict endpoints: half of ``max``, rounded up."""
        return math.ceil(self.max / 2)

    @classmethod
    def disabled(cls) -> "RateLimitConfig":
        return cls(enabled=False)

    @classmethod
    def from_value(cls, value: Any, name: str = "rate_limit") -> "RateLimitConfig":
        """Build a config from a raw settings value.

        Presence implies enabled:

        - ``None`` or ``False`` -> disabled
        - ``True`` -> enabled with defaults
        - mapping -> enabled unless it sets ``enabled: False``

        Malformed values fall back to defaults with a warning instead of
        raising, so a config typo never takes authentication down.

        Args:
            value: Raw configuration value
            name: Label used in warning messages

        Returns:
            The parsed RateLimitConfig
        """
        if value is None or value is False:
            return cls.disabled()
        if value is True:
            return cls(enabled=True)
        if isinstance(value, RateLimitConfig):
            return value
        if not isinstance(value, Mapping):
            logger.warning(
                f"Invalid {name} configuration of type {type(value).__name__}, using defaults"
            )
            return cls(enabled=True)

        raw = _collect(value)
        config = cls(enabled=raw.get("enabled") is not False)

        max_requests = raw.get("max")
        if max_requests is not None:
            if _is_positive_int(max_requests):
                config = replace(config, max=max_requests)
            else:
                logger.warning(f"Invalid {name}.max {max_requests!r}, using {DEFAULT_MAX}")

        window = raw.get("window_seconds")
        if window is not None:
            if _is_positive_int(window):
                config = replace(config, window_seconds=window)
            else:
                logger.warning(
                    f"Invalid {name}.window_seconds {window!r}, using {DEFAULT_WINDOW_SECONDS}"
                )

        message = raw.get("message")
        if message is not None:
            if isinstance(message, str) and message:
                config = replace(config, message=message)
            else:
                logger.warning(f"Invalid {name}.message, using default message")

        for list_field in ("skip_endpoints", "strict_endpoints"):
            endpoints = raw.get(list_field)
            if endpoints is None:
                continue
            if isinstance(endpoints, (list, tuple)) and all(isinstance(e, str) for e in endpoints):
                config = replace(config, **{list_field: tuple(endpoints)})
            else:
                logger.warning(f"Invalid {name}.{list_field}, using defaults")

        return config


def _collect(value: Mapping[str, Any]) -> dict[str, Any]:
    collected: dict[str, Any] = {}
    for canonical, aliases in _KEY_ALIASES.items():
        for alias in aliases:
            if alias in value:
                collected[canonical] = value[alias]
                break
    return collected


def _is_positive_int(value: Any) -> bool:
    # bool is an int subclass but never a valid count
    return isinstance(value, int) and not isinstance(value, bool) and value > 0

