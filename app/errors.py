"""Error taxonomy for the authentication and product services.

Every error raised to a caller carries a stable machine-readable ``kind``,
a human-readable ``message`` and the HTTP status it maps to. Messages never
include internal details; the original exception is chained for logging.
"""


class AuthError(Exception):
    """Base class for errors surfaced by the auth service."""

    kind = "auth_error"
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


class ValidationError(AuthError):
    """One or more input fields failed validation."""

    kind = "validation_error"
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, fields: dict[str, list[str]], message: str | None = None) -> None:
        self.fields = fields
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "fields": self.fields}


class DuplicateEmail(AuthError):
    kind = "duplicate_email"
    status_code = 409
    default_message = "User already exists"


class InvalidCredentials(AuthError):
    """Unknown email and wrong password are reported identically."""

    kind = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials"


class NotFound(AuthError):
    kind = "not_found"
    status_code = 404
    default_message = "User not found"


class InvalidOrExpiredToken(AuthError):
    kind = "invalid_or_expired_token"
    status_code = 400
    default_message = "Invalid or expired reset token"


class Unauthenticated(AuthError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Not authenticated"


class InternalError(AuthError):
    kind = "internal_error"
    status_code = 500
    default_message = "Internal server error"


# --- Session token errors ---


class TokenError(Exception):
    """Base class for session token verification failures."""

    pass


class InvalidToken(TokenError):
    """Signature mismatch or malformed payload."""

    pass


class ExpiredToken(TokenError):
    """Token signature is valid but its expiry has passed."""

    pass


# --- Collaborator errors ---


class StoreError(Exception):
    """Persistence layer failure."""

    pass


class NotificationError(Exception):
    """Notification sink failed to deliver a message."""

    def __init__(self, recipient: str, error: str) -> None:
        self.recipient = recipient
        self.error = error
        super().__init__(f"Failed to send email to {recipient}: {error}")


class TagSuggestionError(Exception):
    """The tag suggestion backend could not produce tags."""

    pass
