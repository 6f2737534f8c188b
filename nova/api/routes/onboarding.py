"""First-login onboarding: create the local user and join (or create) an organization."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from starlette.concurrency import run_in_threadpool

from nova.api.auth import Identity, get_identity
from nova.api.models import OnboardingRequest, OnboardingResponse
from nova.database.core.organizations import onboard_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/onboarding", tags=["onboarding"])


@router.post("", response_model=OnboardingResponse)
async def onboarding(data: OnboardingRequest, identity: Identity = Depends(get_identity)):
    """Create the caller's local user.

    Request body:
        OnboardingRequest {name, email, organizationName}

    Behavior:
        - Joins the organization named `organizationName` as ``member``, or
          creates it with the caller as ``admin``.
        - 400 when a field is missing or the caller already has a local user.
    """
    name = (data.name or "").strip()
    email = (data.email or "").strip()
    organization_name = (data.organization_name or "").strip()
    if not name or not email or not organization_name:
        raise HTTPException(status_code=400, detail="Missing required fields")

    res = await run_in_threadpool(
        onboard_user,
        external_id=identity.external_id,
        email=email,
        name=name,
        organization_name=organization_name,
        avatar_url=identity.picture,
    )
    if not res["res"]:
        raise HTTPException(status_code=400, detail=res["detail"])
    return {"success": True, "user": res["user"], "organization": res["organization"]}
