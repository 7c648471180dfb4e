"""Auth API router: register, login, refresh-token, logout, profile."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from roster.core.config import settings
from roster.core.exceptions import AuthenticationError, ValidationError
from roster.core.permissions import Principal, require_read
from roster.core.rate_limiter import limiter
from roster.core.security import security_scheme
from roster.db.session import get_db
from roster.models.session_metadata import DEFAULT_DEVICE_ID
from roster.schemas.schemas import (
    AuthResponse, LoginRequest, MessageResponse, ProfileResponse, RegisterRequest,
)
from roster.services.auth_service import ClientInfo, TokenPair, auth_service

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE = "refreshToken"
CLIENT_TYPES = ("web", "native")


def get_client_info(request: Request) -> ClientInfo:
    """Collect IP, user-agent and the declared device id for the session row."""
    device_id = (request.headers.get("X-Device-Id") or "").strip()[:100]
    return ClientInfo(
        ip_address=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
        device_id=device_id or DEFAULT_DEVICE_ID,
    )


def _client_type(request: Request) -> str:
    client_type = (request.headers.get("X-Client-Type") or "native").strip().lower()
    if client_type not in CLIENT_TYPES:
        raise ValidationError("X-Client-Type must be 'web' or 'native'")
    return client_type


def _deliver_tokens(request: Request, response: Response, pair: TokenPair, message: str) -> AuthResponse:
    """Web clients get the refresh token as a cookie only; native clients in the body."""
    if _client_type(request) == "web":
        response.set_cookie(
            REFRESH_COOKIE,
            pair.refresh_token,
            max_age=settings.refresh_token_max_age,
            path=settings.AUTH_ROUTE_PREFIX,
            httponly=True,
            secure=settings.is_production,
            samesite="strict",
        )
        return AuthResponse(message=message, access_token=pair.access_token)
    return AuthResponse(message=message, access_token=pair.access_token, refresh_token=pair.refresh_token)


@router.post("/register", status_code=201, response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(settings.REGISTER_RATE_LIMIT)
def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    db: Session = Depends(get_db),
):
    """Register a new user and open its first session."""
    _client_type(request)
    _, pair = auth_service.register(
        db,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        client=get_client_info(request),
        role_name=body.role,
    )
    return _deliver_tokens(request, response, pair, "User registered successfully")


@router.post("/login", response_model=AuthResponse, response_model_exclude_none=True)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    """Authenticate and return a fresh token pair."""
    _client_type(request)
    _, pair = auth_service.login(db, body.email, body.password, get_client_info(request))
    return _deliver_tokens(request, response, pair, "Login successful")


@router.post("/refresh-token", response_model=AuthResponse, response_model_exclude_none=True)
def refresh_token(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
):
    """Rotate the refresh token (bearer header or cookie) and issue a new access token."""
    _client_type(request)
    token = credentials.credentials if credentials else request.cookies.get(REFRESH_COOKIE)
    _, pair = auth_service.refresh(db, token, get_client_info(request))
    return _deliver_tokens(request, response, pair, "Token refreshed successfully")


@router.post("/logout", response_model=MessageResponse)
def logout(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    db: Session = Depends(get_db),
):
    """Delete the caller's session; its refresh token stops working."""
    if credentials is None:
        raise AuthenticationError("Authorization token required")
    auth_service.logout(db, credentials.credentials, get_client_info(request))
    response.delete_cookie(
        REFRESH_COOKIE,
        path=settings.AUTH_ROUTE_PREFIX,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=ProfileResponse)
def profile(principal: Principal = Depends(require_read)):
    """Return the authenticated principal."""
    return ProfileResponse(message="You are authenticated", user=principal.to_dict())
