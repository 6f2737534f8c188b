"""
Authentication gate.

Resolves the caller's identity through a pluggable ``AuthProvider`` and maps
it to the local user record. Nothing here writes to the database.

Rules
-----
- No identity → not authenticated.
- Identity with an unverified email → treated as not authenticated, except on
  the verification/onboarding allow-list (``UNVERIFIED_ALLOWED_PATHS``).
- Identity without a local user → not authenticated for anything that needs
  the local user (the caller must finish onboarding first).

Failures raise ``AuthenticationRequired``; the application's exception handler
answers JSON API callers with ``401`` and browser navigations with a redirect
to ``redirect_to``.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from nova.api.utils import verify_token
from nova.database.core.access import role_in_organization
from nova.database.core.organizations import get_user_by_external_id
from nova.database.entities.organization import OrganizationRole

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
VERIFY_EMAIL_PATH = "/verify-email"
ONBOARDING_PATH = "/onboarding"

UNVERIFIED_ALLOWED_PATHS = (
    "/api/auth/resend-verification",
    "/api/auth/me",
    "/verify-email",
    "/onboarding",
    "/api/onboarding",
    "/auth/",
)
"""Path prefixes reachable with an identity whose email is not verified yet."""


@dataclass(frozen=True)
class Identity:
    """Caller identity as reported by the identity provider."""

    external_id: str
    email: str
    email_verified: bool
    name: Optional[str] = None
    picture: Optional[str] = None


@dataclass(frozen=True)
class AuthenticatedUser:
    """A verified identity joined with its local user row."""

    id: UUID
    external_id: str
    email: str
    name: Optional[str]
    avatar_url: Optional[str]
    identity: Identity


class AuthenticationRequired(Exception):
    """The request needs an authenticated (and possibly onboarded) caller."""

    def __init__(self, detail: str, redirect_to: str = LOGIN_PATH) -> None:
        super().__init__(detail)
        self.detail = detail
        self.redirect_to = redirect_to


class AuthProvider(Protocol):
    async def authenticate(self, request: Request) -> Optional[Identity]:
        """Return the caller's identity, or None when the request carries none."""
        ...


class JWTSessionAuthProvider:
    """
    Reads a signed session token from the session cookie or an
    ``Authorization: Bearer`` header.

    Expected claims: ``sub``, ``email``, ``email_verified``, ``name``, ``picture``.
    """

    def __init__(self, cookie_name: str = "token") -> None:
        self.cookie_name = cookie_name

    def _extract_token(self, request: Request) -> Optional[str]:
        token = request.cookies.get(self.cookie_name)
        if token:
            return token
        header = request.headers.get("authorization", "")
        scheme, _, credentials = header.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
        return None

    async def authenticate(self, request: Request) -> Optional[Identity]:
        token = self._extract_token(request)
        if not token:
            return None
        claims = verify_token(token)
        if not claims or not claims.get("sub"):
            return None
        return Identity(
            external_id=str(claims["sub"]),
            email=claims.get("email", ""),
            email_verified=bool(claims.get("email_verified", False)),
            name=claims.get("name"),
            picture=claims.get("picture"),
        )


def is_unverified_allowed(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in UNVERIFIED_ALLOWED_PATHS)


async def get_identity(request: Request) -> Identity:
    """
    FastAPI dependency: the caller's identity.

    Raises
    ------
    AuthenticationRequired
        No identity, or an unverified email outside the allow-list.
    """
    provider: AuthProvider = request.app.state.auth_provider
    identity = await provider.authenticate(request)
    if identity is None:
        raise AuthenticationRequired("Unauthorized", redirect_to=LOGIN_PATH)
    if not identity.email_verified and not is_unverified_allowed(request.url.path):
        raise AuthenticationRequired("Email not verified", redirect_to=VERIFY_EMAIL_PATH)
    return identity


async def get_current_user(identity: Identity = Depends(get_identity)) -> AuthenticatedUser:
    """
    FastAPI dependency: the caller's local user.

    Raises
    ------
    AuthenticationRequired
        The identity has no local user yet (redirects to onboarding).
    """
    user = await run_in_threadpool(get_user_by_external_id, external_id=identity.external_id)
    if user is None:
        raise AuthenticationRequired("Unauthorized", redirect_to=ONBOARDING_PATH)
    return AuthenticatedUser(
        id=user["id"],
        external_id=user["external_id"],
        email=user["email"],
        name=user["name"],
        avatar_url=user["avatar_url"],
        identity=identity,
    )


async def require_organization_access(user: AuthenticatedUser, organization_id: UUID) -> OrganizationRole:
    """
    The caller's role in `organization_id`.

    Raises
    ------
    HTTPException
        403 when the caller is not a member.
    """
    role = await run_in_threadpool(role_in_organization, user_id=user.id, organization_id=organization_id)
    if role is None:
        raise HTTPException(status_code=403, detail="Access denied to this organization")
    return role


async def require_organization_admin(user: AuthenticatedUser, organization_id: UUID, detail: str = "Admin access required") -> None:
    role = await require_organization_access(user, organization_id)
    if role is not OrganizationRole.admin:
        raise HTTPException(status_code=403, detail=detail)
