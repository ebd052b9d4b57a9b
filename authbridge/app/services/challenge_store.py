"""Database-backed WebAuthn challenge mappings.

Lets passkey flows work for cookieless (JWT-only) clients:

1. When the upstream issues registration/authentication options it keeps
   the WebAuthn challenge itself and hands back a verification token in a
   cookie.
2. We store ``challenge_id -> verification_token`` and give the client
   only the ``challenge_id``.
3. On verification the client sends the ``challenge_id`` back and the
   verification token is re-injected as the upstream cookie.

The verification token never reaches the client. Mappings expire after
``ttl_seconds``; expired rows are ignored on read and removed by the
cleanup scheduler via ``purge_expired``.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from authbridge.app.core.logging import get_logger
from authbridge.app.core.masking import mask_identifier
from authbridge.app.core.security import generate_challenge_id
from authbridge.app.db.async_session import create_session_maker, get_async_session, init_models
from authbridge.app.db.models import CHALLENGE_TYPES, ChallengeMapping
from authbridge.app.exceptions import ChallengeStorageError, ChallengeStorageNotInitializedError

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 300
DEFAULT_CHALLENGE_COOKIE = "better-auth.better-auth-passkey"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _option(config: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in config:
            return config[key]
    return None


class ChallengeMappingStore:
    """Maps client-facing challenge IDs to upstream verification tokens.

    The store is disabled until ``initialize`` succeeds. While disabled,
    writes raise ChallengeStorageNotInitializedError and reads return None.
    """

    TABLE = ChallengeMapping.__table__

    def __init__(
        self,
        engine: Optional[AsyncEngine],
        passkey_config: Any = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the store.

        Args:
            engine: Async engine, or None when no database is available
            passkey_config: Raw ``better_auth_passkey`` setting
                (bool, mapping or None)
            clock: Returns the current time as an aware UTC datetime
        """
        self._engine = engine
        self._clock = clock
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None
        self._enabled = False

        options = passkey_config if isinstance(passkey_config, Mapping) else {}
        passkey_disabled = passkey_config is False or options.get("enabled") is False
        self._use_cookie_storage = _option(options, "challenge_storage", "challengeStorage") == "cookie"
        self._policy_enabled = not passkey_disabled and not self._use_cookie_storage

        ttl = _option(options, "challenge_ttl_seconds", "challengeTtlSeconds")
        if ttl is not None and not (isinstance(ttl, int) and not isinstance(ttl, bool) and ttl > 0):
            logger.warning(f"Invalid passkey challenge_ttl_seconds {ttl!r}, using {DEFAULT_TTL_SECONDS}")
            ttl = None
        self._ttl_seconds = ttl or DEFAULT_TTL_SECONDS

        cookie_name = _option(options, "webauthn_challenge_cookie", "webAuthnChallengeCookie")
        self._cookie_name = cookie_name if isinstance(cookie_name, str) and cookie_name else DEFAULT_CHALLENGE_COOKIE

    async def initialize(self) -> None:
        """Create the table and indexes when storage is allowed.

        Never raises: a missing engine or a failing DDL statement leaves the
        store disabled.
        """
        if self._use_cookie_storage:
            logger.info("Using cookie-based challenge storage (explicitly configured)")
        if not self._policy_enabled:
            return

        if self._engine is None:
            logger.warning("Database engine not available, challenge storage disabled")
            return

        try:
            await init_models(self._engine, tables=[self.TABLE])
        except Exception as e:
            logger.error(f"Failed to initialize challenge storage: {e}")
            return

        self._session_maker = create_session_maker(self._engine)
        self._enabled = True
        logger.info("WebAuthn challenge storage initialized (database mode)")

    def is_enabled(self) -> bool:
        return self._enabled and self._session_maker is not None

    def get_ttl_seconds(self) -> int:
        return self._ttl_seconds

    def get_cookie_name(self) -> str:
        """Name of the upstream cookie that carries the verification token."""
        return self._cookie_name

    async def store_challenge_mapping(
        self, verification_token: str, user_id: str, challenge_type: str
    ) -> str:
        """Persist a new mapping.

        Args:
            verification_token: Upstream verification token from its cookie
            user_id: User the challenge belongs to
            challenge_type: ``authentication`` or ``registration``

        Returns:
            The new challenge ID to hand to the client

        Raises:
            ChallengeStorageNotInitializedError: If the store is disabled
            ChallengeStorageError: If the row could not be written
        """
        session_maker = self._require_session_maker()
        if challenge_type not in CHALLENGE_TYPES:
            raise ValueError(f"Invalid challenge type: {challenge_type!r}")

        challenge_id = generate_challenge_id()
        now = _as_utc(self._clock())
        mapping = ChallengeMapping(
            challenge_id=challenge_id,
            verification_token=verification_token,
            user_id=user_id,
            type=challenge_type,
            created_at=now,
            expires_at=now + timedelta(seconds=self._ttl_seconds),
        )

        try:
            async with get_async_session(session_maker) as session:
                session.add(mapping)
                await session.commit()
        except IntegrityError as e:
            # Unique index on challenge_id: never overwrite an existing mapping
            raise ChallengeStorageError(f"Challenge ID collision: {mask_identifier(challenge_id)}") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to store challenge mapping: {e}")
            raise ChallengeStorageError("Failed to store challenge mapping") from e

        logger.debug(f"Stored {challenge_type} challenge mapping for user {mask_identifier(user_id)}")
        return challenge_id

    async def get_verification_token(self, challenge_id: str) -> Optional[str]:
        """Look up the verification token for ``challenge_id``.

        Returns None when the store is disabled, the mapping is missing, or
        it has expired but has not been purged yet.
        """
        if not self.is_enabled() or not challenge_id:
            return None

        try:
            async with get_async_session(self._session_maker) as session:
                result = await session.execute(
                    select(ChallengeMapping).where(ChallengeMapping.challenge_id == challenge_id)
                )
                mapping = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read challenge mapping: {e}")
            raise ChallengeStorageError("Failed to read challenge mapping") from e

        if mapping is None:
            logger.debug(f"Challenge mapping not found: {mask_identifier(challenge_id)}")
            return None

        if _as_utc(mapping.expires_at) <= _as_utc(self._clock()):
            logger.debug(f"Challenge mapping expired: {mask_identifier(challenge_id)}")
            return None

        return mapping.verification_token

    async def delete_challenge_mapping(self, challenge_id: str) -> None:
        """Remove a mapping; unknown IDs are ignored."""
        session_maker = self._require_session_maker()
        try:
            async with get_async_session(session_maker) as session:
                await session.execute(
                    delete(ChallengeMapping).where(ChallengeMapping.challenge_id == challenge_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete challenge mapping: {e}")
            raise ChallengeStorageError("Failed to delete challenge mapping") from e
        logger.debug(f"Deleted challenge mapping: {mask_identifier(challenge_id)}")

    async def delete_user_challenge_mappings(self, user_id: str) -> int:
        """Remove every mapping for ``user_id`` (logout everywhere, account deletion).

        Returns:
            Number of mappings deleted
        """
        session_maker = self._require_session_maker()
        try:
            async with get_async_session(session_maker) as session:
                result = await session.execute(
                    delete(ChallengeMapping).where(ChallengeMapping.user_id == user_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete user challenge mappings: {e}")
            raise ChallengeStorageError("Failed to delete user challenge mappings") from e

        deleted = result.rowcount or 0
        if deleted:
            logger.debug(f"Deleted {deleted} challenge mappings for user {mask_identifier(user_id)}")
        return deleted

    async def purge_expired(self) -> int:
        """Delete mappings whose ``expires_at`` has passed.

        Maintenance job for the cleanup scheduler; returns 0 when disabled.
        """
        if not self.is_enabled():
            return 0

        now = _as_utc(self._clock())
        try:
            async with get_async_session(self._session_maker) as session:
                result = await session.execute(
                    delete(ChallengeMapping).where(ChallengeMapping.expires_at <= now)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to purge challenge mappings: {e}")
            raise ChallengeStorageError("Failed to purge challenge mappings") from e

        purged = result.rowcount or 0
        if purged:
            logger.debug(f"Purged {purged} expired challenge mappings")
        return purged

    def _require_session_maker(self) -> async_sessionmaker[AsyncSession]:
        if not self.is_enabled():
            raise ChallengeStorageNotInitializedError()
        return self._session_maker
