"""Pytest configuration and fixtures."""

import os
from datetime import timedelta

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.clock import utcnow  # noqa: E402
from app.config import get_settings  # noqa: E402
from app.database import Base, build_engine, get_db, make_session_factory  # noqa: E402
from app.models.product import Product  # noqa: E402, F401
from app.models.user import User  # noqa: E402, F401
from app.services.auth import AuthService  # noqa: E402
from app.services.jwt import JWTService  # noqa: E402
from app.services.notifications import LogNotificationSink, get_notification_sink  # noqa: E402
from app.services.passwords import PasswordHasher  # noqa: E402
from app.services.reset_tokens import ResetTokenGenerator  # noqa: E402
from app.stores.users import SqlAlchemyUserStore  # noqa: E402


class FakeClock:
    """Controllable replacement for app.clock.utcnow."""

    def __init__(self, now=None) -> None:
        self.now = now or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = make_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="sink")
def sink_fixture():
    """Notification sink that records messages instead of sending them."""
    return LogNotificationSink()


@pytest.fixture(name="clock")
def clock_fixture():
    return FakeClock()


@pytest.fixture(name="auth_service")
def auth_service_fixture(db_session: Session, sink: LogNotificationSink, clock: FakeClock):
    """AuthService wired to the test database with a controllable clock."""
    return AuthService(
        store=SqlAlchemyUserStore(db_session),
        hasher=PasswordHasher(rounds=4),
        tokens=JWTService(secret_key="test-secret-key", clock=clock),
        reset_tokens=ResetTokenGenerator(expire_minutes=60),
        sink=sink,
        settings=get_settings(),
        clock=clock,
    )


@pytest.fixture(name="client")
def client_fixture(db_session: Session, sink: LogNotificationSink):
    """Create a test client with overridden DB and email dependencies and disabled rate limiting."""
    from app.rate_limit import limiter
    from main import app

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sink] = lambda: sink
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, sink: LogNotificationSink):
    """Create a test user and return its public fields plus a session token."""
    from app.dependencies import get_auth_service

    auth_service = get_auth_service(db=db_session, sink=sink)
    result = auth_service.register("Test", "User", "test@example.com", "password123")

    return {
        "id": result.user.id,
        "first_name": result.user.first_name,
        "last_name": result.user.last_name,
        "email": result.user.email,
        "password": "password123",
        "token": result.token,
    }


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(test_user: dict) -> dict:
    return {"Authorization": f"Bearer {test_user['token']}"}
