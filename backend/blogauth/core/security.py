"""Security utilities - JWT access tokens, refresh secrets, password hashing"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from jose import JWTError, jwt
import bcrypt
import hashlib
import secrets

from blogauth.config import settings
from blogauth.core.exceptions import TokenInvalidError

Clock = Callable[[], datetime]

# Compared against when the email is unknown so login timing stays uniform.
_DUMMY_PASSWORD_HASH = bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=4)).decode("utf-8")


def utc_now() -> datetime:
    """Current time as naive UTC, matching how timestamps are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """
    Verify a password against its hash

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password, or None when no account matched

    Returns:
        bool: True if password matches
    """
    if hashed_password is None:
        bcrypt.checkpw(plain_password.encode('utf-8'), _DUMMY_PASSWORD_HASH.encode('utf-8'))
        return False
    return bcrypt.checkpw(
        plain_password.encode('utf-8'),
        hashed_password.encode('utf-8')
    )


def get_password_hash(password: str) -> str:
    """
    Hash a password using bcrypt

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return bcrypt.hashpw(
        password.encode('utf-8'),
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode('utf-8')


def hash_refresh_secret(secret: str) -> str:
    """Storage key for a refresh secret; raw secrets are never persisted"""
    return hashlib.sha256(secret.strip().encode("utf-8")).hexdigest()


class TokenCodec:
    """Signs and verifies access tokens and mints refresh secrets"""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_ttl: Optional[timedelta] = None,
        clock: Clock = utc_now,
    ) -> None:
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.access_ttl = access_ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.clock = clock

    def issue_access_token(self, subject_id: int) -> str:
        """
        Create a signed access token for a subject

        Args:
            subject_id: Identifier of the authenticated user

        Returns:
            str: Encoded JWT
        """
        now = self.clock()
        payload: Dict[str, Any] = {
            "sub": str(subject_id),
            "iat": int(now.replace(tzinfo=timezone.utc).timestamp()),
            "exp": int((now + self.access_ttl).replace(tzinfo=timezone.utc).timestamp()),
            "typ": "access",
            "jti": secrets.token_urlsafe(16),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def decode_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Decode and verify an access token

        Expiry is checked against the codec clock rather than wall time.

        Returns:
            Optional[Dict]: Claims, or None if the token is unusable
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

        if payload.get("typ") != "access":
            return None
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            return None
        now_ts = self.clock().replace(tzinfo=timezone.utc).timestamp()
        if exp <= now_ts:
            return None
        return payload

    def verify_access_token(self, token: str) -> int:
        """
        Resolve an access token to its subject id

        Raises:
            TokenInvalidError: Bad signature, malformed payload or expired
        """
        payload = self.decode_access_token(token)
        if payload is None:
            raise TokenInvalidError()
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError):
            raise TokenInvalidError()

    @staticmethod
    def generate_refresh_secret() -> str:
        """256 bits of randomness, hex encoded"""
        return secrets.token_hex(32)


token_codec = TokenCodec()
