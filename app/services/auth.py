"""Authentication service.

Owns every transition of a user's credential lifecycle: registration, login,
profile lookup and the forgot/reset password flow. Collaborators (store,
hasher, token issuer, reset token generator, notification sink, clock) are
injected so each request gets a service bound to its own database session.

Reset flow per user::

    NO_RESET --forgot_password--> PENDING(token, expires_at)
    PENDING  --reset_password(matching, unexpired)--> NO_RESET
    PENDING  --reset_password(expired)--> PENDING (error only)
    PENDING  --forgot_password--> PENDING(new token, new expires_at)
"""

import html
import logging
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email

from app.clock import Clock, utcnow
from app.config import Settings, get_settings
from app.errors import (
    DuplicateEmail,
    InternalError,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    NotificationError,
    StoreError,
    Unauthenticated,
    ValidationError,
)
from app.models.user import User
from app.schemas.auth import UserPublic
from app.services.jwt import JWTService, TokenClaims
from app.services.notifications import NotificationSink
from app.services.passwords import PasswordHasher
from app.services.reset_tokens import ResetTokenGenerator
from app.stores.users import UserStore

logger = logging.getLogger("product_admin")

PASSWORD_MIN_LENGTH = 6
# bcrypt only accepts inputs up to 72 bytes
PASSWORD_MAX_BYTES = 72
RESET_EMAIL_SUBJECT = "Password Reset"


@dataclass
class AuthResult:
    """Session token plus the public projection of the authenticated user."""

    user: UserPublic
    token: str


def to_public(user: User) -> UserPublic:
    return UserPublic(id=user.id, first_name=user.first_name, last_name=user.last_name, email=user.email)


def _validate_password(password: str, errors: dict[str, list[str]], field: str = "password") -> None:
    if not isinstance(password, str) or not password:
        errors.setdefault(field, []).append("Password is required")
    elif len(password) < PASSWORD_MIN_LENGTH:
        errors.setdefault(field, []).append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.setdefault(field, []).append(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")


def validate_registration(first_name: str, last_name: str, email: str, password: str) -> dict[str, list[str]]:
    """Return per-field error messages for a registration attempt (empty when valid)."""
    errors: dict[str, list[str]] = {}
    if not isinstance(first_name, str) or not first_name.strip():
        errors.setdefault("firstName", []).append("First name is required")
    if not isinstance(last_name, str) or not last_name.strip():
        errors.setdefault("lastName", []).append("Last name is required")
    if not isinstance(email, str) or not email.strip():
        errors.setdefault("email", []).append("Email is required")
    else:
        try:
            validate_email(email.strip(), check_deliverability=False)
        except EmailNotValidError:
            errors.setdefault("email", []).append("Email must be a valid email address")
    _validate_password(password, errors)
    return errors


def render_reset_email(reset_url: str, expire_minutes: int) -> str:
    link = html.escape(reset_url, quote=True)
    return (
        "<p>You requested a password reset</p>\n"
        f'<p>Click this <a href="{link}">link</a> to reset your password.</p>\n'
        f"<p>This link will expire in {_describe_minutes(expire_minutes)}.</p>\n"
    )


def _describe_minutes(minutes: int) -> str:
    if minutes % 60 == 0:
        hours = minutes // 60
        return "1 hour" if hours == 1 else f"{hours} hours"
    return f"{minutes} minutes"


class AuthService:
    """Handles user registration, authentication and password resets."""

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: JWTService,
        reset_tokens: ResetTokenGenerator,
        sink: NotificationSink,
        settings: Settings | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.reset_tokens = reset_tokens
        self.sink = sink
        self.settings = settings or get_settings()
        self.clock = clock

    def register(self, first_name: str, last_name: str, email: str, password: str) -> AuthResult:
        """Register a new user and issue a session token.

        Raises DuplicateEmail when the email is taken (checked before any other
        rule) and ValidationError with per-field messages otherwise.
        """
        if isinstance(email, str) and email.strip():
            existing = self._call_store(self.store.find_by_email, email)
            if existing:
                raise DuplicateEmail()

        errors = validate_registration(first_name, last_name, email, password)
        if errors:
            raise ValidationError(errors)

        user = User(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email.strip().lower(),
            password_hash=self.hasher.hash(password),
        )
        user = self._call_store(self.store.create, user)
        logger.info("Registered user %s", user.id)

        return AuthResult(user=to_public(user), token=self.tokens.issue(user.id, user.email))

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate by email and password.

        Unknown email and wrong password raise the same InvalidCredentials error.
        """
        user = None
        if isinstance(email, str) and email.strip():
            user = self._call_store(self.store.find_by_email, email)

        if user is None:
            # Spend one hash check so unknown emails are not distinguishable by timing.
            self.hasher.verify_dummy(password or "")
            logger.info("Failed login for unknown email")
            raise InvalidCredentials()

        if not isinstance(password, str) or not self.hasher.verify(password, user.password_hash):
            logger.info("Failed login for user %s", user.id)
            raise InvalidCredentials()

        return AuthResult(user=to_public(user), token=self.tokens.issue(user.id, user.email))

    def profile(self, current_user: TokenClaims | None) -> UserPublic:
        """Return the public projection of the authenticated caller."""
        if current_user is None:
            raise Unauthenticated()
        user = self._call_store(self.store.find_by_id, current_user.user_id)
        if user is None:
            raise Unauthenticated("User not found")
        return to_public(user)

    def forgot_password(self, email: str) -> None:
        """Issue a reset token for ``email`` and hand the reset link to the notification sink.

        The token and its expiry are persisted together before delivery is
        attempted, so a sink failure (InternalError) leaves the token usable.
        """
        user = None
        if isinstance(email, str) and email.strip():
            user = self._call_store(self.store.find_by_email, email)
        if user is None:
            if self.settings.FORGOT_PASSWORD_REVEAL_UNKNOWN:
                raise NotFound()
            logger.info("Password reset requested for unknown email")
            return

        if user.has_pending_reset():
            logger.info("Replacing pending password reset for user %s", user.id)

        reset = self.reset_tokens.generate(self.clock())
        user.reset_token = reset.token
        user.reset_token_expires_at = reset.expires_at
        user = self._call_store(self.store.save, user)
        logger.info("Password reset issued for user %s", user.id)

        reset_url = f"{self.settings.FRONTEND_URL.rstrip('/')}/reset-password/{reset.token}"
        body = render_reset_email(reset_url, self.reset_tokens.expire_minutes)
        try:
            self.sink.send(user.email, RESET_EMAIL_SUBJECT, body)
        except NotificationError as e:
            logger.error("Password reset email for user %s was not delivered: %s", user.id, e.error)
            raise InternalError("Failed to send password reset email") from e

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token and set a new password.

        Unknown and expired tokens raise the same InvalidOrExpiredToken error and
        leave the stored reset state untouched.
        """
        errors: dict[str, list[str]] = {}
        _validate_password(new_password, errors)
        if errors:
            raise ValidationError(errors)

        if not isinstance(token, str) or not token:
            raise InvalidOrExpiredToken()

        user = self._call_store(self.store.find_by_reset_token, token)
        if user is None or user.reset_expired(self.clock()):
            raise InvalidOrExpiredToken()

        user.password_hash = self.hasher.hash(new_password)
        user.reset_token = None
        user.reset_token_expires_at = None
        self._call_store(self.store.save, user)
        logger.info("Password reset completed for user %s", user.id)

    @staticmethod
    def _call_store(operation, *args):
        try:
            return operation(*args)
        except StoreError as e:
            raise InternalError() from e
