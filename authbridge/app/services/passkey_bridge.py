"""Bridges upstream passkey challenge cookies through the challenge store.

Options endpoints:
    The upstream answers with its challenge cookie. We store the
    verification token it carries, add ``challengeId`` to the JSON body and
    drop the cookie from the client response.

Verify endpoints:
    The client sends ``challengeId`` in the JSON body. We look up the
    verification token and send it upstream as the challenge cookie. The
    mapping is released once the upstream has answered, success or not.
"""

import json
from typing import Iterable, Optional

from authbridge.app.core.logging import get_logger
from authbridge.app.core.masking import mask_identifier
from authbridge.app.core.security import is_already_signed, sign_cookie_value
from authbridge.app.core.web import find_cookie_value
from authbridge.app.services.challenge_store import ChallengeMappingStore

logger = get_logger(__name__)

OPTIONS_PATHS = {
    "/passkey/generate-register-options": "registration",
    "/passkey/generate-authenticate-options": "authentication",
}
VERIFY_PATHS = frozenset({"/passkey/verify-registration", "/passkey/verify-authentication"})
ANONYMOUS_USER = "anonymous"


class PasskeyChallengeBridge:
    """Adapter between the upstream passkey plugin and ChallengeMappingStore."""

    def __init__(self, store: ChallengeMappingStore, secret: Optional[str] = None):
        self._store = store
        self._secret = secret or None

    @property
    def store(self) -> ChallengeMappingStore:
        return self._store

    def is_active(self) -> bool:
        """True when challenges go through the database instead of cookies."""
        return self._store.is_enabled()

    @staticmethod
    def challenge_type_for(path: str) -> Optional[str]:
        """Challenge type issued by an options endpoint, or None."""
        return OPTIONS_PATHS.get(path)

    @staticmethod
    def is_verify_path(path: str) -> bool:
        return path in VERIFY_PATHS

    async def register_challenge(
        self,
        set_cookie_headers: Iterable[str],
        challenge_type: str,
        user_id: Optional[str] = None,
    ) -> Optional[str]:
        """Store the verification token from the upstream challenge cookie.

        Returns:
            The new challenge ID, or None when the upstream set no challenge
            cookie

        Raises:
            ChallengeStorageNotInitializedError: If the store is disabled
            ChallengeStorageError: If the mapping could not be written
        """
        value = find_cookie_value(set_cookie_headers, self._store.get_cookie_name())
        if not value:
            logger.debug("Upstream response carried no passkey challenge cookie")
            return None

        verification_token = value.rsplit(".", 1)[0] if is_already_signed(value) else value
        return await self._store.store_challenge_mapping(
            verification_token,
            user_id or ANONYMOUS_USER,
            challenge_type,
        )

    async def resolve_challenge_cookie(self, challenge_id: str) -> Optional[str]:
        """Build the ``name=value`` cookie pair for a challenge ID.

        Returns None when the mapping is unknown or expired.
        """
        verification_token = await self._store.get_verification_token(challenge_id)
        if verification_token is None:
            logger.info(f"Unknown or expired passkey challenge: {mask_identifier(challenge_id)}")
            return None

        if self._secret:
            cookie_value = sign_cookie_value(verification_token, self._secret, url_encode=True)
        else:
            cookie_value = verification_token
        return f"{self._store.get_cookie_name()}={cookie_value}"

    async def release(self, challenge_id: str) -> None:
        """Delete a mapping after its verification attempt."""
        if self.is_active():
            await self._store.delete_challenge_mapping(challenge_id)

    def strip_challenge_cookie(self, set_cookie_headers: Iterable[str]) -> list[str]:
        """Drop the challenge cookie from headers relayed to the client."""
        prefix = f"{self._store.get_cookie_name()}="
        return [header for header in set_cookie_headers if not header.strip().startswith(prefix)]

    @staticmethod
    def read_challenge_id(body: bytes) -> Optional[str]:
        """Read ``challengeId`` from a JSON request body."""
        if not body:
            return None
        try:
            payload = json.loads(body)
        except (ValueError, UnicodeDecodeError):
            return None
        if not isinstance(payload, dict):
            return None
        challenge_id = payload.get("challengeId")
        return challenge_id if isinstance(challenge_id, str) and challenge_id else None

    @staticmethod
    def add_challenge_id(body: bytes, challenge_id: str) -> Optional[bytes]:
        """Add ``challengeId`` to a JSON object body.

        Returns:
            The new body, or None when the body is not a JSON object
        """
        try:
            payload = json.loads(body) if body else {}
        except (ValueError, UnicodeDecodeError):
            return None
        if not isinstance(payload, dict):
            return None
        payload["challengeId"] = challenge_id
        return json.dumps(payload).encode("utf-8")
