"""Unit tests for the authentication gate."""

from __future__ import annotations

import pytest
from conftest import auth_headers, session_token
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from nova.api.auth import (
    AuthenticatedUser,
    AuthenticationRequired,
    Identity,
    JWTSessionAuthProvider,
    get_current_user,
    get_identity,
    is_unverified_allowed,
)
from nova.api.utils import create_access_token, verify_token
from nova.main import authentication_handler


@pytest.fixture
def gate_app(engine) -> FastAPI:
    """Minimal app exposing the two dependencies."""
    app = FastAPI()
    app.state.auth_provider = JWTSessionAuthProvider(cookie_name="token")
    app.add_exception_handler(AuthenticationRequired, authentication_handler)

    @app.get("/api/identity")
    async def identity(identity: Identity = Depends(get_identity)):
        return {"sub": identity.external_id, "verified": identity.email_verified}

    @app.get("/api/auth/me")
    async def me(identity: Identity = Depends(get_identity)):
        return {"sub": identity.external_id}

    @app.get("/api/user")
    async def user(user: AuthenticatedUser = Depends(get_current_user)):
        return {"id": str(user.id), "email": user.email}

    @app.get("/dashboard")
    async def dashboard(user: AuthenticatedUser = Depends(get_current_user)):
        return {"id": str(user.id)}

    return app


@pytest.fixture
def gate(gate_app):
    return TestClient(gate_app)


class TestSessionTokens:
    def test_round_trip(self) -> None:
        token = create_access_token({"sub": "auth0|1", "email": "a@b.test"})

        claims = verify_token(token)

        assert claims["sub"] == "auth0|1"
        assert "exp" in claims

    def test_tampered_token(self) -> None:
        token = create_access_token({"sub": "auth0|1"})

        assert verify_token(token[:-2] + "xx") is None

    def test_expired_token(self) -> None:
        assert verify_token(create_access_token({"sub": "auth0|1"}, expires_minutes=-1)) is None


class TestIdentity:
    def test_no_credentials(self, gate) -> None:
        response = gate.get("/api/identity")

        assert response.status_code == 401
        assert response.json()["redirectTo"] == "/auth/login"

    def test_bearer_token(self, gate) -> None:
        response = gate.get("/api/identity", headers=auth_headers(external_id="auth0|x", email="x@x.test"))

        assert response.json() == {"sub": "auth0|x", "verified": True}

    def test_cookie(self, gate) -> None:
        gate.cookies.set("token", session_token("auth0|cookie", "c@x.test"))

        assert gate.get("/api/identity").json()["sub"] == "auth0|cookie"

    def test_unverified_email_is_rejected(self, gate) -> None:
        response = gate.get("/api/identity", headers=auth_headers(external_id="auth0|u", email="u@x.test", email_verified=False))

        assert response.status_code == 401
        assert response.json()["redirectTo"] == "/verify-email"

    def test_unverified_email_allowed_on_allow_list(self, gate) -> None:
        response = gate.get("/api/auth/me", headers=auth_headers(external_id="auth0|u", email="u@x.test", email_verified=False))

        assert response.status_code == 200

    @pytest.mark.parametrize(
        ("path", "allowed"),
        [
            ("/api/auth/me", True),
            ("/api/onboarding", True),
            ("/verify-email", True),
            ("/auth/login", True),
            ("/api/chat", False),
            ("/api/documents", False),
        ],
    )
    def test_allow_list(self, path, allowed) -> None:
        assert is_unverified_allowed(path) is allowed


class TestCurrentUser:
    def test_onboarded_user(self, gate, world) -> None:
        response = gate.get("/api/user", headers=auth_headers(world.member))

        assert response.status_code == 200
        assert response.json() == {"id": str(world.member.id), "email": "member@acme.test"}

    def test_identity_without_local_user_needs_onboarding(self, gate, world) -> None:
        response = gate.get("/api/user", headers=auth_headers(external_id="auth0|fresh", email="f@x.test"))

        assert response.status_code == 401
        assert response.json()["redirectTo"] == "/onboarding"

    def test_browser_navigation_is_redirected(self, gate, world) -> None:
        response = gate.get("/dashboard", headers={"accept": "text/html"}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"] == "/auth/login"
