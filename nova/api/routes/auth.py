"""Session introspection for the frontend."""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from nova.api.auth import Identity, get_identity
from nova.api.models import MeResponse
from nova.database.core.organizations import get_user_by_external_id

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=MeResponse)
async def me(identity: Identity = Depends(get_identity)):
    """Return the caller's identity and local user.

    Reachable with an unverified email so the frontend can route the caller
    to verification or onboarding. ``user`` is null until onboarding is done.
    """
    user = await run_in_threadpool(get_user_by_external_id, external_id=identity.external_id)
    return {
        "identity": {
            "external_id": identity.external_id,
            "email": identity.email,
            "email_verified": identity.email_verified,
            "name": identity.name,
            "picture": identity.picture,
        },
        "user": user,
        "needs_onboarding": user is None,
    }
