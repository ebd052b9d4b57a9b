"""Cookie signing and random identifiers.

Signed cookie values use the layout ``{value}.{signature}`` where the
signature is the padded standard base64 HMAC-SHA256 of ``value`` (44
characters ending in ``=``), the format the upstream's cookie verifier
accepts. The secret is always passed in explicitly.
"""

import base64
import hashlib
import hmac
import re
import secrets
from urllib.parse import quote, unquote

from authbridge.app.exceptions import CookieSigningError

_SIGNATURE_RE = re.compile(r"^[A-Za-z0-9+/_-]+=*$")
_MIN_SIGNATURE_LENGTH = 20


def _compute_signature(value: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_cookie_value(value: str, secret: str, url_encode: bool = False) -> str:
    """Sign a cookie value using HMAC-SHA256.

    Args:
        value: The raw cookie value to sign
        secret: The secret to use for signing
        url_encode: Whether to URL-encode the result. Set to True for any
            value placed in a Cookie or Set-Cookie header, since the
            signature contains ``+``, ``/`` and ``=``.

    Returns:
        The signed cookie value (``value.signature``)

    Raises:
        CookieSigningError: If no secret is provided
    """
    if not secret:
        raise CookieSigningError("Cannot sign cookie: auth secret is not configured")

    signed_value = f"{value}.{_compute_signature(value, secret)}"
    return quote(signed_value, safe="") if url_encode else signed_value


def verify_signed_cookie_value(signed_value: str, secret: str) -> str | None:
    """Verify a signed cookie value and return the unsigned value.

    Args:
        signed_value: Value in ``value.signature`` layout, optionally URL-encoded
        secret: The secret the value was signed with

    Returns:
        The original value if the signature matches, otherwise None
    """
    if not signed_value or not secret:
        return None
    decoded = unquote(signed_value)
    value, sep, signature = decoded.rpartition(".")
    if not sep or not value:
        return None
    expected = _compute_signature(value, secret)
    if not secrets.compare_digest(expected, signature):
        return None
    return value


def is_already_signed(value: str) -> bool:
    """Check whether a cookie value looks like ``value.signature``.

    JWTs have two dots and are never treated as signed. URL-encoded values
    are decoded before inspection.
    """
    if not value:
        return False

    decoded = unquote(value)
    if decoded.count(".") != 1:
        return False

    signature = decoded.rsplit(".", 1)[1]
    return len(signature) >= _MIN_SIGNATURE_LENGTH and bool(_SIGNATURE_RE.match(signature))


def sign_cookie_value_if_needed(value: str, secret: str, url_encode: bool = True) -> str:
    """Sign a cookie value unless it already carries a signature.

    Prevents double-signing, which would make the cookie invalid.
    """
    if is_already_signed(value):
        if url_encode:
            return value if "%" in value else quote(value, safe="")
        return unquote(value) if "%" in value else value
    return sign_cookie_value(value, secret, url_encode)


def generate_challenge_id(nbytes: int = 32) -> str:
    """Generate a client-facing challenge identifier.

    Uses `secrets.token_urlsafe()`; the default 32 bytes gives 256 bits
    of randomness.
    """
    return secrets.token_urlsafe(nbytes)
