"""Authentication routes"""

from fastapi import APIRouter, Cookie, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import Annotated, Optional

from blogauth.api.deps import get_current_user, get_session_service
from blogauth.api.errors import api_error_response
from blogauth.config import settings
from blogauth.core.database import get_db
from blogauth.core.exceptions import InvalidSessionError
from blogauth.core.metrics import AUTH_EVENTS
from blogauth.models.user import User
from blogauth.schemas.response import APIResponse, ErrorResponse
from blogauth.schemas.user import TokenResponse, UserCreate, UserLogin, UserResponse
from blogauth.services.session_service import IssuedSession, SessionService

router = APIRouter()

RefreshCookie = Annotated[Optional[str], Cookie(alias=settings.REFRESH_COOKIE_NAME)]


def _set_refresh_cookie(response: Response, secret: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=secret,
        max_age=settings.refresh_cookie_max_age,
        path=settings.REFRESH_COOKIE_PATH,
        secure=settings.REFRESH_COOKIE_SECURE,
        httponly=True,
        samesite=settings.REFRESH_COOKIE_SAMESITE,
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=settings.REFRESH_COOKIE_PATH,
        secure=settings.REFRESH_COOKIE_SECURE,
        httponly=True,
        samesite=settings.REFRESH_COOKIE_SAMESITE,
    )


def _token_response(response: Response, issued: IssuedSession) -> TokenResponse:
    _set_refresh_cookie(response, issued.refresh_secret)
    return TokenResponse(
        access_token=issued.access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(issued.user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
)
def register(
    data: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    """
    Register endpoint - create the user and open a session

    Returns:
        Access token and public user view; refresh secret set as cookie
    """
    issued = service.register(db, data)
    AUTH_EVENTS.labels("register", "success").inc()
    return _token_response(response, issued)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    responses={400: {"model": ErrorResponse}},
)
def login(
    credentials: UserLogin,
    response: Response,
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    """
    Login endpoint - authenticate by email and password

    Returns:
        Access token and public user view; refresh secret set as cookie
    """
    issued = service.login(db, credentials.email, credentials.password)
    AUTH_EVENTS.labels("login", "success").inc()
    return _token_response(response, issued)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}},
)
def refresh(
    request: Request,
    response: Response,
    refresh_token: RefreshCookie = None,
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    """
    Rotate the refresh cookie into a new access token and cookie

    Any failure clears the cookie so the client stops presenting it.
    """
    try:
        issued = service.refresh(db, refresh_token)
    except InvalidSessionError as exc:
        AUTH_EVENTS.labels("refresh", "rejected").inc()
        error = api_error_response(request, exc)
        _clear_refresh_cookie(error)
        return error

    AUTH_EVENTS.labels("refresh", "success").inc()
    return _token_response(response, issued)


@router.post("/logout", response_model=APIResponse, status_code=status.HTTP_200_OK)
def logout(
    response: Response,
    refresh_token: RefreshCookie = None,
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    """Logout endpoint - revoke this device's refresh cookie"""
    service.logout(db, refresh_token)
    _clear_refresh_cookie(response)
    AUTH_EVENTS.labels("logout", "success").inc()
    return APIResponse(message="Logged out successfully")


@router.post("/logout-all", response_model=APIResponse, status_code=status.HTTP_200_OK)
def logout_all(
    response: Response,
    refresh_token: RefreshCookie = None,
    db: Session = Depends(get_db),
    service: SessionService = Depends(get_session_service),
):
    """Logout endpoint - revoke every session of the cookie's owner"""
    revoked = service.logout_all(db, refresh_token)
    _clear_refresh_cookie(response)
    AUTH_EVENTS.labels("logout_all", "success").inc()
    return APIResponse(
        message="Logged out from all devices successfully",
        data={"sessions_revoked": revoked},
    )


@router.get("/me", response_model=UserResponse)
def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Get current user information

    Returns:
        Public view of the bearer token's user
    """
    return UserResponse.model_validate(current_user)
