"""Credential store: persistence of users, password hashes and reset state."""

import logging
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import DuplicateEmail, StoreError
from app.models.user import User

logger = logging.getLogger("product_admin")


class UserStore(Protocol):
    """Lookup and write operations the auth service needs. Each call is atomic."""

    def find_by_id(self, user_id: str) -> User | None: ...

    def find_by_email(self, email: str) -> User | None: ...

    def find_by_reset_token(self, token: str) -> User | None: ...

    def create(self, user: User) -> User: ...

    def save(self, user: User) -> User: ...


class SqlAlchemyUserStore:
    """UserStore backed by a SQLAlchemy session. Every write commits its own transaction."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_by_id(self, user_id: str) -> User | None:
        return self._query(lambda: self.db.get(User, user_id))

    def find_by_email(self, email: str) -> User | None:
        normalized = email.strip().lower()
        return self._query(lambda: self.db.query(User).filter(func.lower(User.email) == normalized).first())

    def find_by_reset_token(self, token: str) -> User | None:
        return self._query(lambda: self.db.query(User).filter(User.reset_token == token).first())

    def create(self, user: User) -> User:
        """Insert a new user. Raises DuplicateEmail if the email is taken."""
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateEmail() from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to create user")
            raise StoreError("Failed to create user") from e
        self.db.refresh(user)
        return user

    def save(self, user: User) -> User:
        """Persist all pending changes on ``user`` in a single UPDATE."""
        self.db.add(user)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to save user %s", user.id)
            raise StoreError("Failed to save user") from e
        self.db.refresh(user)
        return user

    def _query(self, run):
        try:
            return run()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("User lookup failed")
            raise StoreError("User lookup failed") from e
