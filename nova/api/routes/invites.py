"""Invitation acceptance."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from nova.api.auth import AuthenticatedUser, get_current_user
from nova.api.models import InviteAcceptRequest, InviteAcceptResponse
from nova.api.utils import InviteTokenError, verify_invite_token
from nova.database.core.organizations import accept_invitation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/invite", tags=["invitations"])


@router.post("/accept", response_model=InviteAcceptResponse)
async def accept(data: InviteAcceptRequest, user: AuthenticatedUser = Depends(get_current_user)):
    """Join the group named by an invitation token.

    Request body:
        InviteAcceptRequest {token}

    Response:
        200: {'success': True, 'organization': {id, name}, 'group': {id, name}}
        400: missing, invalid or expired token, or already a member
    """
    if not data.token:
        raise HTTPException(status_code=400, detail="Invitation token is required")
    try:
        claims = verify_invite_token(data.token)
        organization_id = UUID(claims.organization_id)
        group_id = UUID(claims.group_id)
    except InviteTokenError as e:
        raise HTTPException(status_code=400, detail=e.detail)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid invitation token")

    res = await run_in_threadpool(
        accept_invitation, user_id=user.id, organization_id=organization_id, group_id=group_id
    )
    if not res["res"]:
        raise HTTPException(status_code=400, detail=res["detail"])
    return {"success": True, "organization": res["organization"], "group": res["group"]}
