"""User model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from app.clock import utcnow
from app.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Application user with hashed credentials and pending reset state."""

    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=_new_id)
    first_name = Column(String(256), nullable=False)
    last_name = Column(String(256), nullable=False)
    email = Column(String(256), unique=True, nullable=False, index=True)
    password_hash = Column(String(256), nullable=False)
    reset_token = Column(String(256), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def has_pending_reset(self) -> bool:
        return self.reset_token is not None and self.reset_token_expires_at is not None

    def reset_expired(self, now: datetime) -> bool:
        """A reset token is only usable while ``now`` is before its expiry."""
        return self.reset_token_expires_at is None or now >= self.reset_token_expires_at
