"""
JWT utilities for session tokens and group invitations.

Functions
---------
create_access_token(data: dict) -> str
    Creates a signed session token with an expiration (`exp`) claim.
verify_token(token: str) -> dict | None
    Verify a session token's signature & expiration and return its claims.
generate_invite_token(...) -> str
    Sign an invitation to a group (default lifetime: 7 days).
verify_invite_token(token: str) -> InviteClaims
    Check an invitation's signature and return its claims, raising
    `InviteTokenError` when it is malformed, tampered with or expired.
build_invite_url(token: str) -> str
    Public acceptance link for an invitation.

Environment contract (from `settings`)
--------------------------------------
AUTH_SECRET_KEY / AUTH_ALGORITHM : session token signing.
ACCESS_TOKEN_EXPIRE_MINUTES : session token lifetime.
INVITE_SECRET_KEY (falls back to AUTH_SECRET_KEY) / INVITE_EXPIRE_DAYS : invitations.
APP_BASE_URL : base of the invitation link.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

from jose import jwt, JWTError
from nova.database.config.config import settings

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed JWT session token.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (``sub``, ``email``, ``email_verified``,
        ``name``, ``picture``). Retrieved by `verify_token`.
    expires_minutes : int | None
        Lifetime override; defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns
    -------
    str
        Encoded JWT string.
    """
    lifetime = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    encoding = data.copy()
    # exp is a NumericDate (seconds since epoch)
    expires = int(datetime.now(timezone.utc).timestamp()) + (int(lifetime) * 60)
    encoding.update({"exp": expires})
    return jwt.encode(encoding, settings.AUTH_SECRET_KEY, algorithm=settings.AUTH_ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Verify a session JWT and return its claims.

    Returns
    ----------
    dict | None
        The claims if the token is valid, otherwise None.

    Notes
    ----------
    On any JWTError (invalid signature, expired, malformed), returns None.
    """
    try:
        return jwt.decode(token, settings.AUTH_SECRET_KEY, algorithms=[settings.AUTH_ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        return None


# ----------------------------------------------------------------------
# Invitations
# ----------------------------------------------------------------------
INVITE_ALGORITHM = "HS256"


class InviteTokenError(Exception):
    """An invitation token is unusable. `expired` tells expiry apart from tampering."""

    def __init__(self, detail: str, expired: bool = False) -> None:
        super().__init__(detail)
        self.detail = detail
        self.expired = expired


@dataclass(frozen=True)
class InviteClaims:
    """Decoded invitation payload."""

    group_id: str
    organization_id: str
    organization_name: str
    group_name: str
    invited_by: str
    invited_by_name: str
    issued_at: int
    expires_at: int

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= int(now.timestamp())


def generate_invite_token(
    group_id: str,
    organization_id: str,
    organization_name: str,
    group_name: str,
    invited_by: str,
    invited_by_name: str,
    expires_in: Optional[timedelta] = None,
) -> str:
    """
    Sign an invitation to `group_id`.

    Parameters
    ----------
    group_id, organization_id : str
        Target group and its organization.
    organization_name, group_name : str
        Names shown on the acceptance page.
    invited_by, invited_by_name : str
        Inviting user id and display name.
    expires_in : timedelta | None
        Lifetime override; defaults to INVITE_EXPIRE_DAYS.

    Returns
    -------
    str
        HS256-signed JWT.
    """
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(days=settings.INVITE_EXPIRE_DAYS)
    payload = {
        "groupId": str(group_id),
        "organizationId": str(organization_id),
        "organizationName": organization_name,
        "groupName": group_name,
        "invitedBy": str(invited_by),
        "invitedByName": invited_by_name,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.invite_secret, algorithm=INVITE_ALGORITHM)


def verify_invite_token(token: str) -> InviteClaims:
    """
    Verify an invitation and return its claims.

    The signature is checked first, expiry second, so an expired but
    authentic invitation is reported as expired rather than invalid.

    Raises
    ------
    InviteTokenError
        Invalid signature or payload (``expired=False``), or past its
        expiry (``expired=True``).
    """
    try:
        payload = jwt.decode(
            token,
            settings.invite_secret,
            algorithms=[INVITE_ALGORITHM],
            options={"verify_exp": False},
        )
    except JWTError as e:
        logger.info("Rejected invitation token: %s", e)
        raise InviteTokenError("Invalid invitation token")

    try:
        claims = InviteClaims(
            group_id=payload["groupId"],
            organization_id=payload["organizationId"],
            organization_name=payload.get("organizationName", ""),
            group_name=payload.get("groupName", ""),
            invited_by=payload.get("invitedBy", ""),
            invited_by_name=payload.get("invitedByName", ""),
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError):
        raise InviteTokenError("Invalid invitation token")

    if claims.is_expired():
        raise InviteTokenError("This invitation has expired", expired=True)
    return claims


def build_invite_url(token: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.APP_BASE_URL).rstrip("/")
    return f"{base}/invite?token={quote(token, safe='')}"
