"""
Organization routes
===================

Organizations, their members and their groups. Any member may read; changes
need the ``admin`` role in the organization.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from nova.api.auth import AuthenticatedUser, get_current_user, require_organization_access, require_organization_admin
from nova.api.models import (
    GroupCreate,
    GroupListResponse,
    GroupOut,
    MemberListResponse,
    MemberOut,
    MemberRoleUpdate,
    OrganizationCreate,
    OrganizationListResponse,
    OrganizationOut,
    OrganizationUpdate,
    SuccessResponse,
)
from nova.database.core.organizations import (
    create_group,
    create_organization,
    delete_organization,
    list_organization_members,
    list_user_groups,
    list_user_organizations,
    remove_member,
    update_member_role,
    update_organization,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/organizations", tags=["organizations"])


@router.get("", response_model=OrganizationListResponse)
async def organizations(user: AuthenticatedUser = Depends(get_current_user)):
    """Organizations the caller belongs to, each with the caller's role."""
    return {"organizations": await run_in_threadpool(list_user_organizations, user_id=user.id)}


@router.post("", response_model=OrganizationOut)
async def new_organization(data: OrganizationCreate, user: AuthenticatedUser = Depends(get_current_user)):
    """Create an organization; the caller becomes its admin."""
    return await run_in_threadpool(
        create_organization, user_id=user.id, name=data.name.strip(), description=data.description
    )


@router.patch("/{organization_id}", response_model=OrganizationOut)
async def edit_organization(
    organization_id: UUID, data: OrganizationUpdate, user: AuthenticatedUser = Depends(get_current_user)
):
    await require_organization_admin(user, organization_id)
    return await run_in_threadpool(
        update_organization, organization_id=organization_id, name=data.name, description=data.description
    )


@router.delete("/{organization_id}", response_model=SuccessResponse)
async def remove_organization(organization_id: UUID, request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    """Delete an organization with its groups, conversations and documents.

    Stored objects are removed after the rows; a failed object delete is
    logged and does not fail the request.
    """
    await require_organization_admin(user, organization_id)
    storage_keys = await run_in_threadpool(delete_organization, organization_id=organization_id)
    blob_store = request.app.state.blob_store
    for key in storage_keys:
        try:
            await run_in_threadpool(blob_store.delete, key)
        except Exception:
            logger.exception("Failed to delete stored object %s", key)
    return {"success": True}


# ----------------------------------------------------------------------
# Members
# ----------------------------------------------------------------------
@router.get("/{organization_id}/members", response_model=MemberListResponse)
async def members(organization_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    await require_organization_access(user, organization_id)
    return {"members": await run_in_threadpool(list_organization_members, organization_id=organization_id)}


@router.patch("/{organization_id}/members", response_model=MemberOut)
async def change_member_role(
    organization_id: UUID, data: MemberRoleUpdate, user: AuthenticatedUser = Depends(get_current_user)
):
    """Change a member's role.

    Request body:
        MemberRoleUpdate {membershipId, newRole}
    """
    await require_organization_admin(user, organization_id)
    if data.membership_id is None or not data.new_role:
        raise HTTPException(status_code=400, detail="membershipId and newRole are required")
    return await run_in_threadpool(
        update_member_role, organization_id=organization_id, membership_id=data.membership_id, role=data.new_role
    )


@router.delete("/{organization_id}/members", response_model=SuccessResponse)
async def delete_member(
    organization_id: UUID,
    membershipId: Optional[UUID] = None,
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Remove a member (``?membershipId=``) together with their group memberships in the organization."""
    await require_organization_admin(user, organization_id)
    if membershipId is None:
        raise HTTPException(status_code=400, detail="membershipId is required")
    await run_in_threadpool(remove_member, organization_id=organization_id, membership_id=membershipId)
    return {"success": True}


# ----------------------------------------------------------------------
# Groups
# ----------------------------------------------------------------------
@router.get("/{organization_id}/groups", response_model=GroupListResponse)
async def organization_groups(organization_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    """The caller's groups inside the organization."""
    await require_organization_access(user, organization_id)
    groups = await run_in_threadpool(list_user_groups, user_id=user.id, organization_id=organization_id)
    return {"groups": groups}


@router.post("/{organization_id}/groups", response_model=GroupOut)
async def new_group(organization_id: UUID, data: GroupCreate, user: AuthenticatedUser = Depends(get_current_user)):
    """Create a group; the creating admin is added as its first member."""
    await require_organization_admin(user, organization_id, detail="Only admins can create groups")
    return await run_in_threadpool(
        create_group,
        user_id=user.id,
        organization_id=organization_id,
        name=data.name.strip(),
        description=data.description,
        rag_instance_id=data.rag_instance_id,
    )
