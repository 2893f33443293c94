"""Password reset token generation."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

RESET_TOKEN_BYTES = 32


@dataclass(frozen=True)
class ResetToken:
    """Opaque single-use reset credential and the moment it stops being valid."""

    token: str
    expires_at: datetime


class ResetTokenGenerator:
    """Generates URL-safe reset tokens with a bounded validity window."""

    def __init__(self, expire_minutes: int = 60) -> None:
        self.expire_minutes = expire_minutes

    def generate(self, now: datetime) -> ResetToken:
        """Generate a token carrying 256 bits of entropy, valid until ``now + expire_minutes``."""
        return ResetToken(
            token=secrets.token_urlsafe(RESET_TOKEN_BYTES),
            expires_at=now + timedelta(minutes=self.expire_minutes),
        )
