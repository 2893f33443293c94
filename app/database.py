"""Database engine and session management."""

from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.config import get_settings

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine for ``url``. SQLite writers wait on a locked database instead of failing."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
    return create_engine(url, connect_args=connect_args, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False)


settings = get_settings()
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = make_session_factory(engine)


class Base(DeclarativeBase):
    """Declarative base shared by the user and product tables."""

    pass


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session; every store write commits on it."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
