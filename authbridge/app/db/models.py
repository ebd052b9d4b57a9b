from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from authbridge.app.db.base import Base

CHALLENGE_TYPES = ("authentication", "registration")


class ChallengeMapping(Base):
    """Maps a client-facing challenge ID to the upstream verification token.

    The upstream auth server keeps the WebAuthn challenge itself; this row
    only bridges the cookie it would otherwise rely on. Rows are deleted
    after use and purged once ``expires_at`` has passed.
    """
    __tablename__ = "webauthn_challenge_mappings"
    __table_args__ = (
        Index("idx_challenge_mappings_challenge_id", "challenge_id", unique=True),
        Index("idx_challenge_mappings_verification_token", "verification_token"),
        Index("idx_challenge_mappings_user_id", "user_id"),
        Index("idx_challenge_mappings_expires_at", "expires_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    challenge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    verification_token: Mapped[str] = mapped_column(String(512), nullable=False)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # authentication | registration
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
