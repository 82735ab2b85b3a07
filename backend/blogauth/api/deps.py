"""API dependencies - authentication guard and service wiring"""

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional

from blogauth.core.database import get_db
from blogauth.core.exceptions import AuthenticationError
from blogauth.core.security import TokenCodec, token_codec
from blogauth.models.user import User
from blogauth.services.session_service import SessionService, session_service

# HTTP Bearer token scheme; missing credentials are reported as our own 401
security = HTTPBearer(auto_error=False)


def get_token_codec() -> TokenCodec:
    return token_codec


def get_session_service() -> SessionService:
    return session_service


def get_current_subject_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    codec: TokenCodec = Depends(get_token_codec),
) -> int:
    """
    Authenticate a request from its bearer access token

    Only verifies the token signature and expiry; no database access, so
    protected routes never wait on the refresh path.

    Returns:
        Subject (user) id

    Raises:
        AuthenticationError: Missing, malformed or expired token
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError("Not authenticated")
    return codec.verify_access_token(credentials.credentials)


def get_current_user(
    subject_id: int = Depends(get_current_subject_id),
    db: Session = Depends(get_db)
) -> User:
    """
    Load the user behind a valid access token

    A user deleted or disabled after the token was issued is treated as
    unauthenticated.
    """
    user = db.query(User).filter(User.id == subject_id).first()
    if not user or not user.is_active:
        raise AuthenticationError("User not found")
    return user
