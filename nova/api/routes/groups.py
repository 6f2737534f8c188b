"""
Group routes
============

- ``GET /api/groups``: the caller's groups across organizations.
- ``PATCH``/``DELETE /api/groups/{id}``: admins of the owning organization.
- ``GET /api/groups/{id}/members``: visible to members of the group.
- ``POST /api/groups/{id}/invite``: signed invitation link (admins only).
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from nova.api.auth import AuthenticatedUser, get_current_user, require_organization_admin
from nova.api.models import GroupListResponse, GroupMemberListResponse, GroupOut, GroupUpdate, InviteResponse, SuccessResponse
from nova.api.utils import build_invite_url, generate_invite_token
from nova.database.core.access import is_member_of_group
from nova.database.core.organizations import delete_group, get_group, list_group_members, list_user_groups, update_group

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.get("", response_model=GroupListResponse)
async def groups(user: AuthenticatedUser = Depends(get_current_user)):
    """Groups the caller is a member of, each with its organization name."""
    return {"groups": await run_in_threadpool(list_user_groups, user_id=user.id)}


@router.patch("/{group_id}", response_model=GroupOut)
async def edit_group(group_id: UUID, data: GroupUpdate, user: AuthenticatedUser = Depends(get_current_user)):
    group = await run_in_threadpool(get_group, group_id=group_id)
    await require_organization_admin(user, group["organization_id"])
    values = data.model_dump(exclude_unset=True)
    if values.get("name") is None:
        values.pop("name", None)
    return await run_in_threadpool(update_group, group_id=group_id, values=values)


@router.delete("/{group_id}", response_model=SuccessResponse)
async def remove_group(group_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    group = await run_in_threadpool(get_group, group_id=group_id)
    await require_organization_admin(user, group["organization_id"])
    await run_in_threadpool(delete_group, group_id=group_id)
    return {"success": True}


@router.get("/{group_id}/members", response_model=GroupMemberListResponse)
async def group_members(group_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    await run_in_threadpool(get_group, group_id=group_id)
    if not await run_in_threadpool(is_member_of_group, user_id=user.id, group_id=group_id):
        raise HTTPException(status_code=403, detail="Access denied to this group")
    return {"members": await run_in_threadpool(list_group_members, group_id=group_id)}


@router.post("/{group_id}/invite", response_model=InviteResponse)
async def invite(group_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    """Create an invitation link to the group.

    Response:
        200: {'inviteUrl': str, 'token': str}
        403: caller is not an admin of the group's organization
        404: group not found
    """
    group = await run_in_threadpool(get_group, group_id=group_id)
    await require_organization_admin(user, group["organization_id"], detail="Only admins can create invitations")
    token = generate_invite_token(
        group_id=group["id"],
        organization_id=group["organization_id"],
        organization_name=group["organization_name"],
        group_name=group["name"],
        invited_by=user.id,
        invited_by_name=user.name or user.email,
    )
    logger.info("User %s created an invitation to group %s", user.id, group_id)
    return {"invite_url": build_invite_url(token), "token": token}
