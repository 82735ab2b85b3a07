"""Generic API response schemas"""

from pydantic import BaseModel, Field
from typing import Optional, Any, Dict

from blogauth.core.security import utc_now


def _timestamp() -> str:
    return utc_now().isoformat()


class APIResponse(BaseModel):
    """Generic API success response"""
    success: bool = True
    message: str
    data: Optional[Any] = None
    timestamp: str = Field(default_factory=_timestamp)


class ErrorResponse(BaseModel):
    """Generic API error response"""
    success: bool = False
    error: str
    details: Optional[Dict[str, Any]] = None
    path: Optional[str] = None
    timestamp: str = Field(default_factory=_timestamp)


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str = Field(default_factory=_timestamp)
    readiness: Dict[str, Any] = Field(default_factory=dict)
