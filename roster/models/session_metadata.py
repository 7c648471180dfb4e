"""Session metadata: the hashed refresh token behind each login."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from roster.db.base import Base

DEFAULT_DEVICE_ID = "default"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DATETIME columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SessionMetadata(Base):
    """One row per (user, device). Stores only the argon2 hash of the
    current refresh token; login and refresh overwrite it in place.

    ``version`` is the optimistic-concurrency counter: a rotation that was
    computed from a stale row fails with ``StaleDataError``.
    """
    __tablename__ = "token_metadata"
    __table_args__ = (
        UniqueConstraint("user_id", "device_id", name="uq_token_metadata_user_device"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(32), unique=True, nullable=False, index=True)  # "sid" claim
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    device_id = Column(String(100), nullable=False, default=DEFAULT_DEVICE_ID)
    refresh_token_hash = Column(String(255), nullable=False)
    ip_address = Column(String(45), nullable=False, default="")
    user_agent = Column(String(500), nullable=False, default="")
    is_revoked = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="sessions")

    __mapper_args__ = {"version_id_col": version}

    def is_expired(self, now: datetime = None) -> bool:
        return self.expires_at <= (now or utcnow())
