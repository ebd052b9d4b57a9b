"""Forwarding router for the Better-Auth endpoints.

Every request under the base path is forwarded to the upstream auth
server with the shared HTTP client:

- the session token (bearer session token, native cookie or legacy
  cookie) is injected as a signed native cookie when the request has none
- passkey verify requests get their challenge cookie back from the
  challenge store
- upstream Set-Cookie headers are relayed and session cookies normalized
- passkey options responses get a ``challengeId`` instead of the cookie
"""

import json
from typing import Any, Optional

import httpx
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from authbridge.app.core.logging import get_logger
from authbridge.app.core.masking import mask_identifier
from authbridge.app.core.tokens import get_user_id_from_token, is_legacy_jwt
from authbridge.app.core.web import (
    build_upstream_cookie_header,
    extract_session_token,
    find_cookie_value,
    get_client_ip,
    get_set_cookie_headers,
    relative_path,
)
from authbridge.app.exceptions import ChallengeStorageError, UpstreamAuthError
from authbridge.app.services.container import AuthComponents
from authbridge.app.services.cookies import CookieTranslator
from authbridge.app.services.passkey_bridge import PasskeyChallengeBridge

logger = get_logger(__name__)

# Maximum request body forwarded upstream (1MB)
MAX_BODY_SIZE = 1024 * 1024

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# Not forwarded in either direction
_HOP_BY_HOP_HEADERS = frozenset({
    "host",
    "connection",
    "keep-alive",
    "content-length",
    "transfer-encoding",
    "content-encoding",
    "upgrade",
    "te",
    "trailer",
    "proxy-authorization",
    "proxy-authenticate",
})


def get_auth_components(request: Request) -> AuthComponents:
    return request.app.state.auth


def get_upstream_client(request: Request) -> httpx.AsyncClient:
    return request.state.http_client


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def build_upstream_headers(
    request: Request,
    components: AuthComponents,
    extra_cookie: Optional[str] = None,
) -> dict[str, str]:
    """Headers for the upstream request.

    Cookie injection rules:
    - a request that already has the native session cookie keeps it as is,
      only the legacy cookie is added when missing
    - otherwise a signed native cookie is created from the session token

    A legacy JWT on the Authorization header belongs to the legacy auth
    path and is not forwarded.
    """
    settings = components.settings
    headers = {
        name: value
        for name, value in request.headers.items()
        if name.lower() not in _HOP_BY_HOP_HEADERS and name.lower() != "cookie"
    }
    headers["x-forwarded-for"] = get_client_ip(request, settings.trust_proxy_headers)

    if is_legacy_jwt(_bearer_token(request)):
        logger.debug("Not forwarding legacy JWT bearer token upstream")
        headers = {name: value for name, value in headers.items() if name.lower() != "authorization"}

    cookie_header = request.headers.get("cookie", "")
    session_token = extract_session_token(
        request,
        settings.better_auth_base_path,
        settings.better_auth_secret or None,
    )
    if session_token:
        headers["authorization"] = f"Bearer {session_token}"
        if not settings.better_auth_secret:
            logger.warning("No Better-Auth secret configured - upstream cookies will not be signed")
        cookie_header = build_upstream_cookie_header(
            cookie_header,
            session_token,
            settings.better_auth_base_path,
            settings.better_auth_secret or None,
        )

    if extra_cookie:
        cookie_header = f"{cookie_header}; {extra_cookie}" if cookie_header else extra_cookie
    if cookie_header:
        headers["cookie"] = cookie_header
    return headers


def _json_object(content: bytes) -> Optional[dict[str, Any]]:
    try:
        payload = json.loads(content) if content else None
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


async def _release_challenge(bridge: PasskeyChallengeBridge, challenge_id: str) -> None:
    """Delete a used challenge mapping.

    A failed delete never replaces the upstream's answer; the mapping
    expires through the TTL purge instead.
    """
    try:
        await bridge.release(challenge_id)
    except ChallengeStorageError as e:
        logger.warning(
            f"Could not delete challenge mapping {mask_identifier(challenge_id)}, "
            f"left to expire: {e}"
        )


def _upstream_error_message(components: AuthComponents, error: Exception) -> str:
    if components.settings.is_production:
        return "Authentication handler error"
    return f"Upstream auth server error: {type(error).__name__}: {error}"


async def proxy_auth_request(request: Request) -> Response:
    """Forward one request to the upstream auth server.

    Raises:
        HTTPException: 413 if the request body is too large
        UpstreamAuthError: If the upstream cannot be reached
        ChallengeStorageError: If a passkey challenge cannot be stored
    """
    components = get_auth_components(request)
    client = get_upstream_client(request)
    settings = components.settings
    bridge = components.passkey_bridge
    cookies = components.cookies
    rel_path = relative_path(request.url.path, settings.better_auth_base_path)

    body = await request.body()
    if len(body) > MAX_BODY_SIZE:
        raise HTTPException(status_code=413, detail=f"Request body too large (max {MAX_BODY_SIZE} bytes)")

    challenge_id = None
    challenge_cookie = None
    if bridge.is_active() and bridge.is_verify_path(rel_path):
        challenge_id = bridge.read_challenge_id(body)
        if challenge_id:
            challenge_cookie = await bridge.resolve_challenge_cookie(challenge_id)

    headers = build_upstream_headers(request, components, challenge_cookie)
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"

    try:
        upstream = await client.request(request.method, url, headers=headers, content=body or None)
    except httpx.HTTPError as e:
        logger.error(f"Upstream auth request failed for {rel_path}: {type(e).__name__}: {e}")
        raise UpstreamAuthError(_upstream_error_message(components, e)) from e
    finally:
        # Challenges are single use, whatever the upstream answered
        if challenge_id:
            await _release_challenge(bridge, challenge_id)

    set_cookie_headers = get_set_cookie_headers(upstream)
    content = upstream.content

    challenge_type = bridge.challenge_type_for(rel_path)
    if challenge_type and bridge.is_active() and upstream.is_success:
        user_id = get_user_id_from_token(_bearer_token(request))
        new_challenge_id = await bridge.register_challenge(set_cookie_headers, challenge_type, user_id)
        if new_challenge_id:
            new_content = bridge.add_challenge_id(content, new_challenge_id)
            if new_content is not None:
                content = new_content
                set_cookie_headers = bridge.strip_challenge_cookie(set_cookie_headers)

    # Cookies set by us, merged into the final response below
    cookie_jar = Response()
    if settings.better_auth_cookies:
        set_cookie_headers = _normalize_session_cookies(cookies, cookie_jar, set_cookie_headers)
        if upstream.is_success:
            payload = _json_object(content)
            if payload is not None and payload.get("token"):
                if cookie_jar.headers.getlist("set-cookie"):
                    # Session cookie already issued from the upstream cookie
                    del payload["token"]
                else:
                    cookies.process_auth_result(cookie_jar, payload, True)
                content = json.dumps(payload).encode("utf-8")

    response = Response(content=content, status_code=upstream.status_code)
    for name, value in upstream.headers.multi_items():
        lower = name.lower()
        if lower in _HOP_BY_HOP_HEADERS or lower == "set-cookie":
            continue
        response.headers.append(name, value)
    for header in set_cookie_headers:
        response.headers.append("set-cookie", header)
    for header in cookie_jar.headers.getlist("set-cookie"):
        response.headers.append("set-cookie", header)
    return response


def _normalize_session_cookies(
    cookies: CookieTranslator,
    cookie_jar: Response,
    set_cookie_headers: list[str],
) -> list[str]:
    """Re-issue the upstream session cookie through the cookie translator.

    Returns the upstream Set-Cookie headers still to be relayed as is.
    """
    name = cookies.cookie_name
    prefix = f"{name}="
    if not any(header.strip().startswith(prefix) for header in set_cookie_headers):
        return set_cookie_headers

    if cookies.extract_session_token_from_response(set_cookie_headers):
        cookies.set_session_cookies_from_web_response(cookie_jar, set_cookie_headers)
        return [header for header in set_cookie_headers if not header.strip().startswith(prefix)]

    # Upstream cleared its session (sign-out): clear ours as well
    if find_cookie_value(set_cookie_headers, name) is None:
        cookies.clear_session_cookies(cookie_jar)
        return [header for header in set_cookie_headers if not header.strip().startswith(prefix)]
    return set_cookie_headers


def build_auth_router(base_path: str) -> APIRouter:
    """Router forwarding everything under ``base_path`` upstream."""
    router = APIRouter(prefix=base_path, tags=["auth"])

    @router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
    async def forward(request: Request, path: str) -> Response:
        return await proxy_auth_request(request)

    return router
