"""Conversation listing for the sidebar."""

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool

from nova.api.auth import AuthenticatedUser, get_current_user
from nova.api.models import ConversationListResponse
from nova.database.core.conversations import list_conversations

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


@router.get("", response_model=ConversationListResponse)
async def user_conversations(user: AuthenticatedUser = Depends(get_current_user)):
    """The caller's conversations, most recently updated first, each with its last message."""
    conversations = await run_in_threadpool(list_conversations, user_id=user.id)
    return {"conversations": conversations}
