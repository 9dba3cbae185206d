"""
HealthFlux Backend — Authentication Service Tests
==================================================

What we test:
    ✅ Bearer header and session cookie are both accepted
    ✅ Bad signature, expiry, missing claims and missing secret → AuthenticationError
    ✅ Issued tokens live for the configured JWT_EXPIRATION_MINUTES
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from jose import jwt

from healthflux.config import settings
from healthflux.exceptions import AuthenticationError
from healthflux.main import install_default_services
from healthflux.services.auth_service import AuthService, Identity

SECRET = "unit-test-secret"


def _connection(headers=None, cookies=None):
    connection = MagicMock()
    connection.headers = headers or {}
    connection.cookies = cookies or {}
    return connection


class TestTokens:
    def test_issue_and_decode_round_trip(self):
        service = AuthService(secret=SECRET)
        identity = Identity(id="u1", email="a@example.com", full_name="A", role="admin")

        assert service.decode(service.issue_token(identity)) == identity

    def test_expired_token(self):
        service = AuthService(secret=SECRET)
        token = service.issue_token(Identity(id="u1", email="a@example.com"), expires_minutes=-1)

        with pytest.raises(AuthenticationError, match="Session expired"):
            service.decode(token)

    def test_wrong_signature(self):
        token = AuthService(secret="other-secret").issue_token(Identity(id="u1", email="a@example.com"))

        with pytest.raises(AuthenticationError):
            AuthService(secret=SECRET).decode(token)

    def test_garbage_token(self):
        with pytest.raises(AuthenticationError):
            AuthService(secret=SECRET).decode("not-a-jwt")

    def test_missing_email_claim(self):
        token = jwt.encode({"sub": "u1"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthenticationError):
            AuthService(secret=SECRET).decode(token)

    def test_empty_secret_rejects_everything(self):
        token = jwt.encode({"sub": "u1", "email": "a@example.com"}, SECRET, algorithm="HS256")

        with pytest.raises(AuthenticationError):
            AuthService(secret="").decode(token)

    def test_role_defaults_to_user(self):
        token = jwt.encode({"sub": "u1", "email": "a@example.com"}, SECRET, algorithm="HS256")
        assert AuthService(secret=SECRET).decode(token).role == "user"


class TestExtraction:
    def test_bearer_header(self):
        service = AuthService(secret=SECRET)
        assert service.extract_token(_connection(headers={"Authorization": "Bearer abc"})) == "abc"

    def test_cookie_fallback(self):
        service = AuthService(secret=SECRET, cookie_name="session")
        assert service.extract_token(_connection(cookies={"session": "xyz"})) == "xyz"

    def test_other_scheme_is_ignored(self):
        service = AuthService(secret=SECRET)
        assert service.extract_token(_connection(headers={"Authorization": "Basic abc"})) is None

    def test_authenticate_without_credentials(self):
        with pytest.raises(AuthenticationError):
            AuthService(secret=SECRET).authenticate(_connection())

    def test_authenticate_with_cookie(self):
        service = AuthService(secret=SECRET)
        token = service.issue_token(Identity(id="u1", email="a@example.com"))

        identity = service.authenticate(_connection(cookies={"access_token": token}))
        assert identity.id == "u1"


class TestTokenLifetime:
    def test_issued_tokens_use_the_configured_lifetime(self):
        service = AuthService(secret=SECRET, token_minutes=90)
        token = service.issue_token(Identity(id="u1", email="a@example.com"))

        claims = jwt.get_unverified_claims(token)
        remaining = claims["exp"] - datetime.now(timezone.utc).timestamp()
        assert 89 * 60 < remaining <= 90 * 60

    def test_explicit_lifetime_overrides_the_default(self):
        service = AuthService(secret=SECRET, token_minutes=90)
        token = service.issue_token(Identity(id="u1", email="a@example.com"), expires_minutes=5)

        remaining = jwt.get_unverified_claims(token)["exp"] - datetime.now(timezone.utc).timestamp()
        assert remaining <= 5 * 60

    def test_app_auth_service_reads_jwt_expiration_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "jwt_expiration_minutes", 45)
        app = FastAPI()
        for name in ("store", "llm", "email_sender", "translator", "file_service"):
            setattr(app.state, name, object())

        install_default_services(app)

        assert app.state.auth.token_minutes == 45
