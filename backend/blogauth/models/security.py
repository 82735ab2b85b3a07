"""Security-related persistence models."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from blogauth.core.database import Base


class RefreshToken(Base):
    """
    One live refresh secret bound to one user.

    Only the SHA-256 digest of the secret is stored. A row is deleted when the
    secret is rotated or revoked; rows past ``expires_at`` are treated as
    absent until the reaper removes them.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    # Naive UTC, compared against the store clock
    created_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_refresh_tokens_user", "user_id"),
        Index("idx_refresh_tokens_expires_at", "expires_at"),
        # Never hand a consumed row's id to its replacement
        {"sqlite_autoincrement": True},
    )
