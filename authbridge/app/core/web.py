"""HTTP helpers shared by the middleware, guards and the auth proxy."""

from typing import Any, Iterable
from urllib.parse import unquote

from starlette.requests import Request

from authbridge.app.core.logging import get_logger
from authbridge.app.core.security import (
    is_already_signed,
    sign_cookie_value_if_needed,
    verify_signed_cookie_value,
)
from authbridge.app.core.tokens import is_session_token

logger = get_logger(__name__)

LEGACY_TOKEN_COOKIE = "token"


def normalize_base_path(base_path: str) -> str:
    """Turn a base path into its cookie prefix ("/iam/v1" -> "iam.v1")."""
    path = base_path[1:] if base_path.startswith("/") else base_path
    return path.replace("/", ".")


def session_cookie_name(base_path: str) -> str:
    """Name of the native session cookie for a base path."""
    return f"{normalize_base_path(base_path)}.session_token"


def get_client_ip(request: Request, trust_proxy_headers: bool = True) -> str:
    """Get the client IP address.

    Order: first hop of X-Forwarded-For, X-Real-IP, socket peer. With
    ``trust_proxy_headers`` off only the socket peer is used, so clients
    cannot pick their own rate limit identity.
    """
    if not trust_proxy_headers:
        return request.client.host if request.client else "unknown"

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return request.client.host if request.client else "unknown"


def relative_path(path: str, base_path: str) -> str:
    """Strip the base path prefix from a request path."""
    if base_path and path.startswith(base_path):
        return path[len(base_path):] or "/"
    return path


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    """Parse a Cookie header into a dict, URL-decoding values."""
    if not cookie_header:
        return {}

    cookies: dict[str, str] = {}
    for pair in cookie_header.split(";"):
        name, sep, raw_value = pair.strip().partition("=")
        if not name or not sep:
            continue
        value = raw_value.strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        cookies[name.strip()] = unquote(value)
    return cookies


def extract_session_token(
    request: Request,
    base_path: str = "/iam",
    secret: str | None = None,
) -> str | None:
    """Extract the session token from the Authorization header or cookies.

    Priority:
        1. ``Authorization: Bearer`` if it carries a session token (not a JWT)
        2. ``{base}.session_token`` native cookie
        3. ``token`` legacy cookie

    Signed cookie values are returned without their signature. When a
    ``secret`` is given the signature is checked, and a cookie that fails
    the check is skipped.
    """
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        bearer_token = auth_header[7:].strip()
        if bearer_token and is_session_token(bearer_token):
            return bearer_token

    cookies = parse_cookie_header(request.headers.get("cookie"))
    for name in (session_cookie_name(base_path), LEGACY_TOKEN_COOKIE):
        token = cookies.get(name)
        if not token:
            continue
        if not is_already_signed(token):
            return token
        if not secret:
            return token.split(".")[0]
        verified = verify_signed_cookie_value(token, secret)
        if verified:
            return verified
        logger.warning(f"Ignoring {name} cookie with an invalid signature")
    return None


def get_set_cookie_headers(source: Any) -> list[str]:
    """Collect raw Set-Cookie header values from a response-like object.

    Accepts an ``httpx.Response``, a Starlette response, either library's
    headers object, or an iterable of header strings.
    """
    if source is None:
        return []
    headers = getattr(source, "headers", source)
    if hasattr(headers, "get_list"):  # httpx.Headers
        return list(headers.get_list("set-cookie"))
    if hasattr(headers, "getlist"):  # starlette Headers / MutableHeaders
        return list(headers.getlist("set-cookie"))
    if isinstance(headers, str):
        return [headers]
    if isinstance(headers, Iterable):
        return [str(h) for h in headers]
    raise TypeError(f"Cannot read Set-Cookie headers from {type(source).__name__}")


def find_cookie_value(set_cookie_headers: Iterable[str], name: str) -> str | None:
    """Return the decoded value of the first Set-Cookie entry named ``name``.

    The value is taken up to the first ``;``, surrounding quotes are
    stripped and percent-escapes decoded. Empty values yield None.
    """
    prefix = f"{name}="
    for header in set_cookie_headers:
        header = header.strip()
        if not header.startswith(prefix):
            continue
        value = header.split(";", 1)[0][len(prefix):].strip()
        if len(value) >= 2 and value[0] == value[-1] == '"':
            value = value[1:-1]
        value = unquote(value)
        return value or None
    return None


def build_upstream_cookie_header(
    existing: str,
    session_token: str | None,
    base_path: str,
    secret: str | None,
) -> str:
    """Build the Cookie header forwarded to the upstream auth server.

    If the request already carries a native session cookie, it is kept as is
    and only the legacy cookie is appended when missing. Otherwise a signed
    native cookie is added, which lets bearer-only clients reach
    cookie-based upstream endpoints.
    """
    if not session_token:
        return existing

    primary_name = session_cookie_name(base_path)
    present = parse_cookie_header(existing)
    parts = [existing] if existing else []

    if primary_name not in present:
        if not secret:
            return existing
        parts.append(f"{primary_name}={sign_cookie_value_if_needed(session_token, secret)}")

    if LEGACY_TOKEN_COOKIE not in present:
        parts.append(f"{LEGACY_TOKEN_COOKIE}={session_token}")
    return "; ".join(parts)
