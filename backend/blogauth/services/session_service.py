"""Session lifecycle: register, login, refresh with rotation, logout."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from blogauth.core.exceptions import ConflictError, InvalidCredentialsError, InvalidSessionError
from blogauth.core.security import TokenCodec, get_password_hash, token_codec, verify_password
from blogauth.models.user import User
from blogauth.schemas.user import UserCreate
from blogauth.services.token_store import RefreshTokenStore, refresh_token_store

logger = logging.getLogger(__name__)


@dataclass
class IssuedSession:
    """A freshly minted credential pair and the user it belongs to"""

    access_token: str
    refresh_secret: str
    user: User


class SessionService:
    """
    Orchestrates the refresh-token state machine.

    There is no session object: a session is Authenticated while its refresh
    row exists and is unexpired, and Anonymous otherwise.
    """

    def __init__(
        self,
        codec: Optional[TokenCodec] = None,
        store: Optional[RefreshTokenStore] = None,
    ) -> None:
        self.codec = codec or token_codec
        self.store = store or refresh_token_store

    def _issue(self, db: Session, user: User) -> IssuedSession:
        secret = self.codec.generate_refresh_secret()
        self.store.save(db, user.id, secret)
        return IssuedSession(
            access_token=self.codec.issue_access_token(user.id),
            refresh_secret=secret,
            user=user,
        )

    @staticmethod
    def _conflicting_fields(existing: List[User], data: UserCreate) -> List[str]:
        fields = []
        if any(u.username == data.username for u in existing):
            fields.append("username")
        if any(u.email == data.email for u in existing):
            fields.append("email")
        return fields

    def register(self, db: Session, data: UserCreate) -> IssuedSession:
        """
        Create a user and open its first session

        Args:
            db: Database session
            data: Registration payload

        Returns:
            Issued credentials

        Raises:
            ConflictError: Username or email already claimed
        """
        existing = (
            db.query(User)
            .filter(or_(User.username == data.username, User.email == data.email))
            .all()
        )
        if existing:
            raise ConflictError(self._conflicting_fields(existing, data))

        user = User(
            username=data.username,
            email=data.email,
            password_hash=get_password_hash(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
        )
        db.add(user)
        try:
            db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration; the unique constraints decide.
            db.rollback()
            raise ConflictError(["username", "email"])

        issued = self._issue(db, user)
        db.commit()
        logger.info("Registered user id=%s username=%s", user.id, user.username)
        return issued

    def login(self, db: Session, email: str, password: str) -> IssuedSession:
        """
        Authenticate by email and password

        Unknown email, wrong password and disabled accounts all raise the same
        InvalidCredentialsError. Other sessions of the user stay alive.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        password_ok = verify_password(password, user.password_hash if user else None)
        if not user or not password_ok or not user.is_active:
            raise InvalidCredentialsError()

        user.last_login = self.codec.clock()
        issued = self._issue(db, user)
        db.commit()
        logger.info("User authenticated: id=%s", user.id)
        return issued

    def refresh(self, db: Session, refresh_secret: Optional[str]) -> IssuedSession:
        """
        Rotate a refresh secret into a new credential pair

        The presented secret is deleted before its replacement is stored, in
        one transaction. The user comes from the stored record, never from
        the caller.

        Raises:
            InvalidSessionError: Secret missing, unknown, already used, revoked
                or expired, or its user is gone or disabled
        """
        if not refresh_secret:
            raise InvalidSessionError()

        user_id = self.store.consume(db, refresh_secret)
        if user_id is None:
            db.rollback()
            logger.info("Refresh rejected")
            raise InvalidSessionError()

        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            db.commit()
            logger.info("Refresh rejected for unavailable user id=%s", user_id)
            raise InvalidSessionError()

        issued = self._issue(db, user)
        db.commit()
        return issued

    def logout(self, db: Session, refresh_secret: Optional[str]) -> None:
        """Revoke one refresh secret. Idempotent."""
        if not refresh_secret:
            return
        self.store.delete_by_secret(db, refresh_secret)
        db.commit()

    def logout_all(self, db: Session, refresh_secret: Optional[str]) -> int:
        """
        Revoke every refresh secret of the user owning this one

        Returns:
            Number of sessions terminated (0 if the secret did not resolve)
        """
        if not refresh_secret:
            return 0
        record = self.store.find_by_secret(db, refresh_secret)
        if record is None:
            return 0
        user_id = record.user_id
        count = self.store.delete_all_for_subject(db, user_id)
        db.commit()
        logger.info("Revoked %d session(s) for user id=%s", count, user_id)
        return count


session_service = SessionService()
