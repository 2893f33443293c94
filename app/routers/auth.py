"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request

from app.dependencies import CurrentUser, get_auth_service, get_current_user
from app.errors import ExpiredToken, InvalidToken
from app.rate_limit import limiter
from app.schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserPublic,
    VerifyResponse,
)
from app.services.auth import AuthService
from app.services.jwt import get_jwt_service

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit("5/minute")
def register(
    request: Request,
    body: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Register a new user account."""
    result = auth_service.register(body.first_name, body.last_name, body.email, body.password)
    return AuthResponse(user=result.user, token=result.token)


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthResponse:
    """Authenticate and receive a JWT token."""
    result = auth_service.login(body.email, body.password)
    return AuthResponse(user=result.user, token=result.token)


@router.get("/profile", response_model=UserPublic)
def profile(
    user: CurrentUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> UserPublic:
    """Return the authenticated user's profile."""
    return auth_service.profile(user)


@router.get("/verify", response_model=VerifyResponse)
def verify_token(token: str) -> VerifyResponse:
    """Verify a JWT token and return its claims."""
    try:
        claims = get_jwt_service().verify(token)
    except ExpiredToken:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except InvalidToken:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    return VerifyResponse(valid=True, user_id=claims.user_id, email=claims.email)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Request a password reset email."""
    auth_service.forgot_password(body.email)
    return MessageResponse(message="Password reset email sent")


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Reset password using a valid reset token."""
    auth_service.reset_password(body.token, body.password)
    return MessageResponse(message="Password has been reset")
