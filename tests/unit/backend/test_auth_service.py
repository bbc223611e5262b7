"""
Unit tests for staff authentication.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from rcn.db.demo_seed import DEMO_PASSWORD
from rcn.services.auth_service import AuthService


SECRET = "test-secret"


@pytest.fixture
def auth(store):
    return AuthService(store, SECRET, access_token_expire_minutes=15)


# =============================================================================
# Passwords
# =============================================================================

class TestPasswords:

    def test_hash_and_verify(self, auth):
        hashed = auth.hash_password("correct horse")
        assert hashed != "correct horse"
        assert auth.verify_password("correct horse", hashed)
        assert not auth.verify_password("wrong horse", hashed)


# =============================================================================
# Login
# =============================================================================

class TestAuthenticateEmail:

    def test_success(self, auth, store):
        response, error = auth.authenticate_email("casemanager@lakeshoregeneral.org", DEMO_PASSWORD)
        assert error is None
        assert response["token_type"] == "bearer"
        assert response["expires_in"] == 900
        assert response["organization_name"] == "Lakeshore General Hospital"
        assert "password_hash" not in response["user"]
        assert store.find_user("USR-lakeshore-cm").last_login_at is not None

    def test_wrong_password(self, auth):
        response, error = auth.authenticate_email("casemanager@lakeshoregeneral.org", "nope")
        assert response is None
        assert error == "Invalid email or password"

    def test_unknown_email_gives_same_error(self, auth):
        _, error = auth.authenticate_email("nobody@example.org", DEMO_PASSWORD)
        assert error == "Invalid email or password"

    def test_inactive_user(self, auth, store):
        user = store.find_user("USR-lakeshore-cm")
        store.state["users"][user.user_id]["status"] = "disabled"
        _, error = auth.authenticate_email(user.email, DEMO_PASSWORD)
        assert error == "Invalid email or password"


# =============================================================================
# Tokens
# =============================================================================

class TestTokens:

    def test_token_resolves_actor(self, auth, store):
        token = auth.create_access_token(store.find_user("USR-sunrise-intake"))
        actor = auth.validate_access_token(token)
        assert actor.user_id == "USR-sunrise-intake"
        assert actor.organization_id == "ORG-sunrise"
        assert actor.department_id == "DEP-sunrise-intake"
        assert actor.is_admin

    def test_expired_token(self, auth):
        token = jwt.encode(
            {"sub": "USR-lakeshore-cm", "type": "access", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
            SECRET,
            algorithm="HS256",
        )
        assert auth.decode_token(token) is None
        assert auth.validate_access_token(token) is None

    def test_foreign_signature(self, auth, store):
        other = AuthService(store, "another-secret")
        token = other.create_access_token(store.find_user("USR-lakeshore-cm"))
        assert auth.validate_access_token(token) is None

    def test_wrong_token_type(self, auth):
        token = jwt.encode({"sub": "USR-lakeshore-cm", "type": "refresh"}, SECRET, algorithm="HS256")
        assert auth.validate_access_token(token) is None

    def test_unknown_user(self, auth):
        token = jwt.encode({"sub": "USR-ghost", "type": "access"}, SECRET, algorithm="HS256")
        assert auth.validate_access_token(token) is None
