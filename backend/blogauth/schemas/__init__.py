"""Pydantic schemas for API validation"""

from blogauth.schemas.user import (
    UserCreate,
    UserResponse,
    UserLogin,
    TokenResponse,
)
from blogauth.schemas.response import APIResponse, ErrorResponse, HealthResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "TokenResponse",
    "APIResponse", "ErrorResponse", "HealthResponse",
]
