"""Rendering of API exceptions as JSON responses"""

from fastapi import Request
from fastapi.responses import JSONResponse

from blogauth.core.exceptions import BaseAPIException
from blogauth.core.security import utc_now


def api_error_response(request: Request, exc: BaseAPIException) -> JSONResponse:
    """Standard error envelope shared by the exception handler and routes"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.message,
            "details": exc.details,
            "path": request.url.path,
            "timestamp": utc_now().isoformat()
        }
    )
