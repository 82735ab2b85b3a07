"""Custom exception classes for the application"""

from typing import Optional, Dict, Any, List


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error (missing or unusable identity)"""
    def __init__(self, message: str = "Authentication failed", status_code: int = 401):
        super().__init__(message, status_code=status_code)


class TokenInvalidError(AuthenticationError):
    """Access token is missing, malformed, badly signed or expired"""
    def __init__(self):
        super().__init__("Invalid or expired token")


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password, never distinguished"""
    def __init__(self):
        super().__init__("Invalid credentials", status_code=400)


class InvalidSessionError(AuthenticationError):
    """
    Refresh secret cannot be used.

    Covers unknown, consumed, revoked and expired secrets with one message.
    """
    def __init__(self):
        super().__init__("Invalid or expired session")


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=400, details=details)


class ConflictError(BusinessLogicError):
    """Username or email already claimed"""
    def __init__(self, fields: List[str]):
        super().__init__(
            "User with this email or username already exists",
            details={"fields": fields},
        )
