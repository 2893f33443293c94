"""Authentication dependencies for FastAPI routes."""

from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.errors import ExpiredToken, InvalidToken, Unauthenticated
from app.services.auth import AuthService
from app.services.jwt import TokenClaims, get_jwt_service
from app.services.notifications import NotificationSink, get_notification_sink
from app.services.passwords import get_password_hasher
from app.services.reset_tokens import ResetTokenGenerator
from app.stores.users import SqlAlchemyUserStore

AUTH_COOKIE_NAME = "pa_auth_token"

CurrentUser = TokenClaims


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def _claims_from_token(token: str | None) -> CurrentUser | None:
    if not token:
        return None
    try:
        return get_jwt_service().verify(token)
    except (InvalidToken, ExpiredToken):
        return None


def get_current_user(request: Request) -> CurrentUser:
    """Extract and validate user from Bearer token or cookie. Raises Unauthenticated if invalid."""
    token = _bearer_token(request) or request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise Unauthenticated()

    try:
        return get_jwt_service().verify(token)
    except ExpiredToken:
        raise Unauthenticated("Token has expired") from None
    except InvalidToken:
        raise Unauthenticated("Invalid token") from None


def get_current_user_from_cookie(request: Request) -> CurrentUser | None:
    """Extract user from cookie, return None if missing or invalid."""
    return _claims_from_token(request.cookies.get(AUTH_COOKIE_NAME))


def require_web_auth(request: Request) -> CurrentUser:
    """Require authentication for web routes. Raises 401 to trigger redirect."""
    user = get_current_user_from_cookie(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def get_auth_service(
    db: Session = Depends(get_db),
    sink: NotificationSink = Depends(get_notification_sink),
) -> AuthService:
    """Build an AuthService bound to the request's database session."""
    settings = get_settings()
    return AuthService(
        store=SqlAlchemyUserStore(db),
        hasher=get_password_hasher(),
        tokens=get_jwt_service(),
        reset_tokens=ResetTokenGenerator(expire_minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        sink=sink,
        settings=settings,
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Set the authentication cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=get_settings().APP_ENV == "production",
        max_age=get_jwt_service().expire_minutes * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    """Clear the authentication cookie."""
    response.delete_cookie(key=AUTH_COOKIE_NAME)
