"""User and token schemas"""

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel


_EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class CamelModel(BaseModel):
    """Serializes snake_case fields as camelCase on the wire"""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class UserLogin(CamelModel):
    """User login schema"""
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserCreate(CamelModel):
    """Registration schema"""
    username: str = Field(..., min_length=3, max_length=50, pattern=r'^[a-zA-Z0-9_-]+$')
    email: str = Field(..., max_length=255, pattern=_EMAIL_PATTERN)
    password: str = Field(..., min_length=3)
    first_name: str = Field("", max_length=100)
    last_name: str = Field("", max_length=100)

    @field_validator('username')
    @classmethod
    def username_alphanumeric(cls, v):
        """Validate username is alphanumeric"""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Username must be alphanumeric (with _ or - allowed)')
        return v.lower()

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(CamelModel):
    """Public view of a user"""
    id: int
    username: str
    email: str
    first_name: str
    last_name: str


class TokenResponse(CamelModel):
    """Access token response; the refresh secret travels only as a cookie"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse
