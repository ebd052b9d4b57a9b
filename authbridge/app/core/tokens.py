"""Token type detection for dual-mode (legacy JWT / Better-Auth) authentication.

Token types are determined by decoding the JWT payload rather than by
counting dots alone:

- Legacy JWT: has an ``id`` claim but no ``sub``
- Better-Auth JWT: has a ``sub`` claim
- Session token: opaque value without JWT structure
"""

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class TokenType(str, Enum):
    """Token kinds seen on the Authorization header and in cookies."""
    BETTER_AUTH_JWT = "better_auth_jwt"
    LEGACY_JWT = "legacy_jwt"
    SESSION_TOKEN = "session_token"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TokenAnalysis:
    """Result of token analysis."""
    type: TokenType
    payload: Optional[dict[str, Any]] = None


def _decode_segment(segment: str) -> dict[str, Any]:
    padded = segment + "=" * (-len(segment) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    if not isinstance(payload, dict):
        raise ValueError("JWT payload is not an object")
    return payload


def analyze_token(token: str | None) -> TokenAnalysis:
    """Determine the type of a token by its structure and payload.

    Args:
        token: The token string to analyze

    Returns:
        TokenAnalysis with the type and, for JWTs, the decoded payload
    """
    if not token or not isinstance(token, str):
        return TokenAnalysis(TokenType.UNKNOWN)

    parts = token.split(".")
    if len(parts) != 3:
        return TokenAnalysis(TokenType.SESSION_TOKEN)

    try:
        payload = _decode_segment(parts[1])
    except (ValueError, binascii.Error, UnicodeDecodeError):
        # Malformed JWT or session token that happens to contain dots
        return TokenAnalysis(TokenType.SESSION_TOKEN)

    if "id" in payload and "sub" not in payload:
        return TokenAnalysis(TokenType.LEGACY_JWT, payload)
    if "sub" in payload:
        return TokenAnalysis(TokenType.BETTER_AUTH_JWT, payload)
    return TokenAnalysis(TokenType.UNKNOWN, payload)


def get_user_id_from_token(token: str | None) -> Optional[str]:
    """Extract the user ID claim from a legacy or Better-Auth JWT."""
    result = analyze_token(token)
    if result.payload is None:
        return None
    if result.type == TokenType.LEGACY_JWT:
        value = result.payload.get("id")
    elif result.type == TokenType.BETTER_AUTH_JWT:
        value = result.payload.get("sub")
    else:
        return None
    return str(value) if value is not None else None


def is_legacy_jwt(token: str | None) -> bool:
    return analyze_token(token).type == TokenType.LEGACY_JWT


def is_session_token(token: str | None) -> bool:
    return analyze_token(token).type == TokenType.SESSION_TOKEN
