"""Tests for authentication endpoints and flows."""

from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.clock import utcnow
from app.models.user import User
from app.services.jwt import JWTService, get_jwt_service
from app.services.notifications import LogNotificationSink


def _reset_token_from(sink: LogNotificationSink) -> str:
    body = sink.get_last_message().body_html
    return body.split("/reset-password/", 1)[1].split('"', 1)[0]


class TestRegistration:
    """Tests for user registration."""

    def test_register_api_success(self, client: TestClient):
        """Register a new user via API."""
        response = client.post(
            "/api/v1/auth/register",
            json={"firstName": "New", "lastName": "User", "email": "new@example.com", "password": "password123"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@example.com"
        assert data["user"]["firstName"] == "New"
        assert data["user"]["lastName"] == "User"
        assert "token" in data

    def test_register_response_excludes_credentials(self, client: TestClient):
        """The public projection never carries the hash or reset fields."""
        response = client.post(
            "/api/v1/auth/register",
            json={"firstName": "New", "lastName": "User", "email": "new@example.com", "password": "password123"},
        )
        assert set(response.json()["user"]) == {"id", "firstName", "lastName", "email"}
        assert "password123" not in response.text

    def test_register_api_duplicate_email(self, client: TestClient, test_user: dict):
        """Reject duplicate email registration."""
        response = client.post(
            "/api/v1/auth/register",
            json={"firstName": "Another", "lastName": "User", "email": "test@example.com", "password": "password123"},
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "duplicate_email"

    def test_register_api_validation_errors(self, client: TestClient):
        """Field-level messages come back for invalid input."""
        response = client.post(
            "/api/v1/auth/register",
            json={"firstName": "", "lastName": "User", "email": "not-an-email", "password": "123"},
        )
        assert response.status_code == 400
        data = response.json()
        assert data["kind"] == "validation_error"
        assert set(data["fields"]) == {"firstName", "email", "password"}

    def test_register_api_missing_field(self, client: TestClient):
        """A body missing required keys is reported as a validation error."""
        response = client.post("/api/v1/auth/register", json={"email": "new@example.com"})
        assert response.status_code == 400
        data = response.json()
        assert data["kind"] == "validation_error"
        assert "password" in data["fields"]

    def test_register_web_success(self, client: TestClient):
        """Register via web form redirects to dashboard."""
        response = client.post(
            "/register",
            data={"first_name": "Web", "last_name": "User", "email": "web@example.com", "password": "password123"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert "pa_auth_token" in response.cookies

    def test_register_web_duplicate(self, client: TestClient, test_user: dict):
        """Web registration with duplicate email shows error."""
        response = client.post(
            "/register",
            data={"first_name": "Dup", "last_name": "User", "email": "test@example.com", "password": "password123"},
        )
        assert response.status_code == 200
        assert "User already exists" in response.text


class TestLogin:
    """Tests for user login."""

    def test_login_api_success(self, client: TestClient, test_user: dict):
        """Login via API with valid credentials."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "password123"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "test@example.com"
        assert data["user"]["id"] == test_user["id"]
        assert "token" in data

    def test_login_api_wrong_password(self, client: TestClient, test_user: dict):
        """Reject login with wrong password."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "wrongpassword"},
        )
        assert response.status_code == 401
        assert response.json() == {"kind": "invalid_credentials", "message": "Invalid credentials"}

    def test_login_api_nonexistent_email(self, client: TestClient):
        """Unknown email gets exactly the same response as a wrong password."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": "password123"},
        )
        assert response.status_code == 401
        assert response.json() == {"kind": "invalid_credentials", "message": "Invalid credentials"}

    def test_login_case_insensitive(self, client: TestClient, test_user: dict):
        """Login works regardless of email case."""
        response = client.post(
            "/api/v1/auth/login",
            json={"email": "TEST@EXAMPLE.COM", "password": "password123"},
        )
        assert response.status_code == 200

    def test_login_web_success(self, client: TestClient, test_user: dict):
        """Web login redirects to dashboard and sets cookie."""
        response = client.post(
            "/login",
            data={"email": "test@example.com", "password": "password123"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert "pa_auth_token" in response.cookies

    def test_login_web_failure(self, client: TestClient, test_user: dict):
        """Web login with wrong password shows error."""
        response = client.post(
            "/login",
            data={"email": "test@example.com", "password": "wrong-password"},
        )
        assert response.status_code == 200
        assert "Invalid credentials" in response.text


class TestProfile:
    """Tests for the profile endpoint."""

    def test_profile_with_bearer_token(self, client: TestClient, test_user: dict, auth_headers: dict):
        response = client.get("/api/v1/auth/profile", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {
            "id": test_user["id"],
            "firstName": "Test",
            "lastName": "User",
            "email": "test@example.com",
        }

    def test_profile_requires_auth(self, client: TestClient):
        response = client.get("/api/v1/auth/profile")
        assert response.status_code == 401
        assert response.json()["kind"] == "unauthenticated"

    def test_profile_rejects_token_signed_with_other_key(self, client: TestClient, test_user: dict):
        token = JWTService(secret_key="some-other-key").issue(test_user["id"], test_user["email"])
        response = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid token"

    def test_profile_for_deleted_user(self, client: TestClient, test_user: dict, auth_headers: dict, db_session):
        """A valid token for a user that no longer exists is not authenticated."""
        db_session.query(User).filter(User.id == test_user["id"]).delete()
        db_session.commit()
        response = client.get("/api/v1/auth/profile", headers=auth_headers)
        assert response.status_code == 401


class TestTokenVerification:
    """Tests for token verification."""

    def test_verify_valid_token(self, client: TestClient, test_user: dict):
        """Verify a valid token returns its claims."""
        response = client.get(f"/api/v1/auth/verify?token={test_user['token']}")
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["userId"] == test_user["id"]
        assert data["email"] == "test@example.com"

    def test_verify_invalid_token(self, client: TestClient):
        """Reject an invalid token."""
        response = client.get("/api/v1/auth/verify?token=invalid.token.here")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"


class TestProtectedRoutes:
    """Tests for authentication-protected web routes."""

    def test_dashboard_requires_auth(self, client: TestClient):
        """Dashboard redirects unauthenticated users to login."""
        response = client.get("/", follow_redirects=False)
        assert response.status_code == 302
        assert "/login" in response.headers["location"]

    def test_dashboard_with_cookie(self, client: TestClient, test_user: dict):
        """Dashboard accessible with valid auth cookie."""
        client.cookies.set("pa_auth_token", test_user["token"])
        response = client.get("/")
        assert response.status_code == 200
        assert "Welcome, Test!" in response.text

    def test_login_page_redirects_authenticated(self, client: TestClient, test_user: dict):
        """Login page redirects already-authenticated users to dashboard."""
        client.cookies.set("pa_auth_token", test_user["token"])
        response = client.get("/login", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"

    def test_logout_clears_cookie(self, client: TestClient, test_user: dict):
        """Logout clears auth cookie and redirects to login."""
        client.cookies.set("pa_auth_token", test_user["token"])
        response = client.get("/logout", follow_redirects=False)
        assert response.status_code == 302
        assert "/login" in response.headers["location"]

    def test_cookie_for_deleted_user_lands_on_login(self, client: TestClient, test_user: dict, db_session: Session):
        """A still-valid cookie for a removed account is dropped instead of bouncing between / and /login."""
        db_session.query(User).filter(User.id == test_user["id"]).delete()
        db_session.commit()
        client.cookies.set("pa_auth_token", test_user["token"])

        response = client.get("/", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login"
        assert response.headers["set-cookie"].startswith("pa_auth_token=")
        assert "Max-Age=0" in response.headers["set-cookie"]

        client.cookies.clear()
        response = client.get("/login", follow_redirects=False)
        assert response.status_code == 200
        assert "Sign in to your account" in response.text

    def test_dashboard_redirect_chain_terminates(self, client: TestClient, test_user: dict, db_session: Session):
        client.post("/login", data={"email": "test@example.com", "password": "password123"}, follow_redirects=False)
        db_session.query(User).filter(User.id == test_user["id"]).delete()
        db_session.commit()

        response = client.get("/")
        assert response.status_code == 200
        assert response.url.path == "/login"

    def test_login_form_missing_fields_rerenders(self, client: TestClient):
        """A form post without fields shows the login page, not a JSON error."""
        response = client.post("/login", data={})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Invalid credentials" in response.text

    def test_api_validation_errors_stay_json(self, client: TestClient):
        response = client.post("/api/v1/auth/login", json={})
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"


class TestForgotPassword:
    """Tests for forgot password flow."""

    def test_forgot_password_existing_email(
        self, client: TestClient, test_user: dict, db_session: Session, sink: LogNotificationSink
    ):
        """Request reset for existing email stores a token and emails the link."""
        response = client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        assert response.status_code == 200
        assert response.json() == {"message": "Password reset email sent"}

        user = db_session.query(User).filter(User.email == "test@example.com").first()
        db_session.refresh(user)
        assert user.reset_token is not None
        assert user.reset_token_expires_at is not None

        message = sink.get_last_message()
        assert message.to_address == "test@example.com"
        assert message.subject == "Password Reset"
        assert f"/reset-password/{user.reset_token}" in message.body_html
        assert "1 hour" in message.body_html

    def test_forgot_password_nonexistent_email(self, client: TestClient, sink: LogNotificationSink):
        """Unknown email is reported as not found and nothing is sent."""
        response = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"
        assert sink.sent == []

    def test_forgot_password_web_page_renders(self, client: TestClient):
        response = client.get("/forgot-password")
        assert response.status_code == 200
        assert "Forgot your password?" in response.text

    def test_forgot_password_web_submit(self, client: TestClient, test_user: dict, sink: LogNotificationSink):
        response = client.post("/forgot-password", data={"email": "test@example.com"})
        assert response.status_code == 200
        assert "Password reset email sent" in response.text
        assert len(sink.sent) == 1


class TestResetPassword:
    """Tests for password reset flow."""

    def test_reset_with_valid_token(self, client: TestClient, test_user: dict, sink: LogNotificationSink):
        """Reset with valid token changes password."""
        client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        token = _reset_token_from(sink)

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "newpassword456"})
        assert response.status_code == 200
        assert response.json() == {"message": "Password has been reset"}

        login_response = client.post(
            "/api/v1/auth/login",
            json={"email": "test@example.com", "password": "newpassword456"},
        )
        assert login_response.status_code == 200

    def test_reset_with_expired_token(
        self, client: TestClient, test_user: dict, db_session: Session, sink: LogNotificationSink
    ):
        """Reset with expired token returns the same error as an unknown token."""
        client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        token = _reset_token_from(sink)

        user = db_session.query(User).filter(User.email == "test@example.com").first()
        user.reset_token_expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "newpassword456"})
        assert response.status_code == 400
        assert response.json() == {"kind": "invalid_or_expired_token", "message": "Invalid or expired reset token"}

    def test_reset_with_invalid_token(self, client: TestClient):
        response = client.post(
            "/api/v1/auth/reset-password",
            json={"token": "totally-bogus-token", "password": "newpassword456"},
        )
        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_or_expired_token"

    def test_reset_with_short_password(self, client: TestClient, test_user: dict, sink: LogNotificationSink):
        client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        token = _reset_token_from(sink)

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "123"})
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"
        assert "password" in response.json()["fields"]

    def test_reset_clears_token(self, client: TestClient, test_user: dict, sink: LogNotificationSink):
        """After reset, the same token cannot be reused."""
        client.post("/api/v1/auth/forgot-password", json={"email": "test@example.com"})
        token = _reset_token_from(sink)

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "newpassword456"})
        assert response.status_code == 200

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "anotherpassword"})
        assert response.status_code == 400

    def test_reset_password_web_page_renders(self, client: TestClient):
        response = client.get("/reset-password/some-token")
        assert response.status_code == 200
        assert "Set a new password" in response.text

    def test_reset_password_web_submit(self, client: TestClient, test_user: dict, sink: LogNotificationSink):
        """Web form reset redirects to the login page."""
        client.post("/forgot-password", data={"email": "test@example.com"})
        token = _reset_token_from(sink)

        response = client.post(
            f"/reset-password/{token}",
            data={"password": "newpassword456", "confirm_password": "newpassword456"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"].startswith("/login")

    def test_reset_password_web_mismatch(self, client: TestClient):
        response = client.post(
            "/reset-password/some-token",
            data={"password": "newpassword456", "confirm_password": "different456"},
        )
        assert response.status_code == 200
        assert "Passwords do not match" in response.text


class TestEndToEnd:
    """Full credential lifecycle through the API."""

    def test_register_login_reset_login(self, client: TestClient, sink: LogNotificationSink):
        response = client.post(
            "/api/v1/auth/register",
            json={"firstName": "A", "lastName": "X", "email": "a@x.com", "password": "secret1"},
        )
        assert response.status_code == 201
        claims = get_jwt_service().verify(response.json()["token"])
        assert claims.email == "a@x.com"
        assert claims.user_id == response.json()["user"]["id"]

        response = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert response.status_code == 200
        assert response.json()["token"]

        response = client.post("/api/v1/auth/forgot-password", json={"email": "a@x.com"})
        assert response.status_code == 200
        token = _reset_token_from(sink)

        response = client.post("/api/v1/auth/reset-password", json={"token": token, "password": "secret2"})
        assert response.status_code == 200

        response = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret1"})
        assert response.status_code == 401
        assert response.json()["kind"] == "invalid_credentials"

        response = client.post("/api/v1/auth/login", json={"email": "a@x.com", "password": "secret2"})
        assert response.status_code == 200


class TestHealthCheck:
    def test_health_check(self, client: TestClient):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["app"] == "product-admin"
