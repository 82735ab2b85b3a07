"""Database models"""

from blogauth.models.user import User
from blogauth.models.security import RefreshToken

__all__ = ["User", "RefreshToken"]
