"""JWT Token Service."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from app.clock import Clock, utcnow
from app.config import get_settings
from app.errors import ExpiredToken, InvalidToken


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a session token."""

    user_id: str
    email: str


class JWTService:
    """Issues and verifies signed session tokens."""

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        expire_minutes: int | None = None,
        clock: Clock = utcnow,
    ) -> None:
        settings = get_settings()
        self.secret_key = secret_key or settings.JWT_SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.expire_minutes = expire_minutes if expire_minutes is not None else settings.JWT_EXPIRE_MINUTES
        self.clock = clock

    def issue(self, user_id: str, email: str) -> str:
        """Create a JWT token for the given user."""
        now = self.clock()
        payload = {
            "sub": str(user_id),
            "email": email,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Decode and validate a JWT token.

        Raises ExpiredToken once the expiry has passed and InvalidToken for a
        bad signature or a payload without the expected claims.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise InvalidToken("Invalid token") from e

        user_id = payload.get("sub")
        email = payload.get("email")
        exp = payload.get("exp")
        if not isinstance(user_id, str) or not isinstance(email, str) or not isinstance(exp, int | float):
            raise InvalidToken("Malformed token payload")

        if datetime.fromtimestamp(exp, UTC).replace(tzinfo=None) <= self.clock():
            raise ExpiredToken("Token has expired")

        return TokenClaims(user_id=user_id, email=email)

    def is_token_valid(self, token: str) -> bool:
        """Check if a token is valid."""
        try:
            self.verify(token)
        except (InvalidToken, ExpiredToken):
            return False
        return True


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
