"""Session cookie translation between the upstream auth server and clients.

Cookie strategy:

| Cookie                     | Purpose                                   | When set                    |
|----------------------------|-------------------------------------------|-----------------------------|
| ``{base}.session_token``   | Upstream's native cookie, signed           | Always                      |
| ``token``                  | Plain token for the legacy JWT auth path   | ``legacy_cookie_enabled``   |

The native cookie carries ``token.signature``, URL-encoded; passkey and
2FA flows on the upstream reject unsigned values.
"""

from dataclasses import dataclass, field
from typing import Any, MutableMapping, Optional

from starlette.responses import Response

from authbridge.app.core.logging import get_logger
from authbridge.app.core.security import sign_cookie_value
from authbridge.app.core.web import (
    LEGACY_TOKEN_COOKIE,
    find_cookie_value,
    get_set_cookie_headers,
    normalize_base_path,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class CookieHelperConfig:
    """Configuration for CookieTranslator.

    Attributes:
        base_path: Upstream base path (``/iam`` or ``iam``)
        legacy_cookie_enabled: Also set the plain ``token`` cookie
        secret: Secret used to sign the native cookie
        secure: Set the ``Secure`` attribute (production)
    """
    base_path: str
    legacy_cookie_enabled: bool = False
    secret: Optional[str] = field(default=None, repr=False)
    secure: bool = False


class CookieTranslator:
    """Sets, clears and reads the authentication cookies.

    Example:
        cookies = create_cookie_helper("/iam", legacy_cookie_enabled=True, secret=secret)

        # sign-in
        cookies.set_session_cookies(response, session_token)

        # sign-out
        cookies.clear_session_cookies(response)
    """

    def __init__(self, config: CookieHelperConfig):
        self._config = config
        self._normalized_base_path = normalize_base_path(config.base_path)
        self._cookie_name = f"{self._normalized_base_path}.session_token"

    @property
    def config(self) -> CookieHelperConfig:
        return self._config

    @property
    def normalized_base_path(self) -> str:
        """Base path as used in the cookie name ("iam" for "/iam")."""
        return self._normalized_base_path

    @property
    def cookie_name(self) -> str:
        """Name of the native session cookie."""
        return self._cookie_name

    def get_default_cookie_options(self) -> dict[str, Any]:
        """Keyword arguments for ``Response.set_cookie``."""
        return {
            "httponly": True,
            "samesite": "lax",
            "secure": self._config.secure,
            "path": "/",
        }

    def set_session_cookies(
        self,
        response: Response,
        session_token: str,
        secret: Optional[str] = None,
    ) -> None:
        """Set the session cookies on ``response``.

        Args:
            response: Outgoing response
            session_token: Raw session token
            secret: Overrides the configured signing secret
        """
        options = self.get_default_cookie_options()
        signing_secret = secret or self._config.secret

        if signing_secret:
            # URL-encoded so the cookie layer does not quote the padded signature
            cookie_value = sign_cookie_value(session_token, signing_secret, url_encode=True)
        else:
            logger.warning("No secret configured - setting unsigned cookie (passkey/2FA may fail)")
            cookie_value = session_token

        response.set_cookie(self._cookie_name, cookie_value, **options)

        # The legacy path does not understand signed values
        if self._config.legacy_cookie_enabled:
            response.set_cookie(LEGACY_TOKEN_COOKIE, session_token, **options)

    def clear_session_cookies(self, response: Response) -> None:
        """Expire the session cookies on ``response``."""
        options = {**self.get_default_cookie_options(), "max_age": 0}
        response.set_cookie(self._cookie_name, "", **options)
        if self._config.legacy_cookie_enabled:
            response.set_cookie(LEGACY_TOKEN_COOKIE, "", **options)

    def extract_session_token_from_response(self, raw_response: Any) -> Optional[str]:
        """Read the session token from a response's Set-Cookie headers.

        Accepts an ``httpx.Response``, a Starlette response, a headers object
        or a list of Set-Cookie strings. A signed value (``value.signature``,
        two dot-separated parts) yields only ``value``; any other shape is
        returned whole. The signature is not verified here.

        Returns:
            The session token, or None when absent, empty or unparsable
        """
        try:
            headers = get_set_cookie_headers(raw_response)
            token = find_cookie_value(headers, self._cookie_name)
            if token is None:
                return None
            parts = token.split(".")
            if len(parts) == 2:
                return parts[0] or None
            return token
        except Exception as e:
            logger.debug(f"Failed to extract session token from response: {e}")
            return None

    def set_session_cookies_from_web_response(self, response: Response, web_response: Any) -> None:
        """Copy the session from an upstream response onto ``response``.

        Does nothing when the upstream response carries no session cookie.
        """
        session_token = self.extract_session_token_from_response(web_response)
        if not session_token:
            return
        self.set_session_cookies(response, session_token)

    def process_auth_result(
        self,
        response: Response,
        result: MutableMapping[str, Any],
        cookies_enabled: bool,
    ) -> MutableMapping[str, Any]:
        """Move ``result["token"]`` into cookies.

        With cookies enabled and a token present, the cookies are set and
        the token is removed from ``result`` (modified in place).

        Returns:
            The same ``result`` object
        """
        if not cookies_enabled:
            return result

        token = result.get("token")
        if token:
            self.set_session_cookies(response, token)
            del result["token"]
        return result


def create_cookie_helper(
    base_path: str,
    legacy_cookie_enabled: bool = False,
    secret: Optional[str] = None,
    secure: bool = False,
) -> CookieTranslator:
    """Create a CookieTranslator with the usual settings."""
    return CookieTranslator(
        CookieHelperConfig(
            base_path=base_path,
            legacy_cookie_enabled=legacy_cookie_enabled,
            secret=secret,
            secure=secure,
        )
    )
