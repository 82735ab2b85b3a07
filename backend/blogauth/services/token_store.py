"""Persistent store of live refresh tokens."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from blogauth.config import settings
from blogauth.core.security import Clock, hash_refresh_secret, utc_now
from blogauth.models.security import RefreshToken


class RefreshTokenStore:
    """
    Keyed store of refresh secrets (by digest) to their owning user.

    Methods flush but never commit; callers own the transaction. A record
    whose ``expires_at`` has passed is reported as absent by every read,
    whether or not the reaper has removed the row yet.
    """

    def __init__(self, ttl: Optional[timedelta] = None, clock: Clock = utc_now) -> None:
        self.ttl = ttl or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        self.clock = clock

    def save(self, db: Session, subject_id: int, secret: str) -> RefreshToken:
        now = self.clock()
        record = RefreshToken(
            user_id=subject_id,
            token_hash=hash_refresh_secret(secret),
            created_at=now,
            expires_at=now + self.ttl,
        )
        db.add(record)
        db.flush()
        return record

    def find_by_secret(self, db: Session, secret: str) -> Optional[RefreshToken]:
        return (
            db.query(RefreshToken)
            .filter(
                RefreshToken.token_hash == hash_refresh_secret(secret),
                RefreshToken.expires_at >= self.clock(),
            )
            .first()
        )

    def consume(self, db: Session, secret: str) -> Optional[int]:
        """
        Delete a live secret and return its user id.

        Concurrent callers presenting the same secret may all find the row,
        but only the one whose DELETE actually removes it gets the user id;
        everyone else gets None. The DELETE matches on the digest as well as
        the id, so a stale caller cannot remove a replacement row that
        reused the consumed id.
        """
        record = self.find_by_secret(db, secret)
        if record is None:
            return None
        user_id = record.user_id
        result = db.execute(
            delete(RefreshToken)
            .where(
                RefreshToken.id == record.id,
                RefreshToken.token_hash == hash_refresh_secret(secret),
                RefreshToken.expires_at >= self.clock(),
            )
            .execution_options(synchronize_session=False)
        )
        db.expunge(record)
        if result.rowcount != 1:
            return None
        return user_id

    def delete_by_secret(self, db: Session, secret: str) -> None:
        (
            db.query(RefreshToken)
            .filter(RefreshToken.token_hash == hash_refresh_secret(secret))
            .delete(synchronize_session=False)
        )

    def delete_all_for_subject(self, db: Session, subject_id: int) -> int:
        return (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == subject_id)
            .delete(synchronize_session=False)
        )

    def count_for_subject(self, db: Session, subject_id: int) -> int:
        """Live (unexpired) records for a user"""
        return (
            db.query(RefreshToken)
            .filter(RefreshToken.user_id == subject_id, RefreshToken.expires_at >= self.clock())
            .count()
        )

    def purge_expired(self, db: Session) -> int:
        """Physically remove expired rows. Cleanup only; reads never rely on it."""
        return (
            db.query(RefreshToken)
            .filter(RefreshToken.expires_at < self.clock())
            .delete(synchronize_session=False)
        )


refresh_token_store = RefreshTokenStore()
