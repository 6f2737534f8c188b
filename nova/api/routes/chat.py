"""
Chat routes
===========

- ``POST /api/chat``: run one chat turn and stream the answer as server-sent
  events (``data: <json>\\n\\n`` frames terminated by ``data: [DONE]\\n\\n``).
  Validation, authorization and conversation resolution happen before the
  response starts, so their failures are ordinary HTTP errors.
- ``GET /api/chat/{conversation_id}``: a conversation with its messages.
"""

import json
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from nova.api.auth import AuthenticatedUser, get_current_user
from nova.api.models import ConversationDetailResponse
from nova.database.core.conversations import get_conversation_detail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("")
async def chat(request: Request, user: AuthenticatedUser = Depends(get_current_user)):
    """Stream the assistant's answer to one user message.

    Request body:
        {"message": str, "groupId": str, "conversationId": str | null}

    Response:
        200 text/event-stream:
            data: {"conversationId": "..."}
            data: {"content": "..."}      (one per fragment)
            data: [DONE]                  or data: {"error": "..."}
        400 invalid body, 403 no access to the group or conversation.
    """
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    orchestrator = request.app.state.orchestrator
    turn = await orchestrator.begin_turn(user.id, body)
    logger.info("Chat turn started for conversation %s (group %s)", turn.conversation_id, turn.group_id)
    return StreamingResponse(
        orchestrator.stream_turn(turn),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def conversation_detail(conversation_id: UUID, user: AuthenticatedUser = Depends(get_current_user)):
    """Conversation with group, organization and messages in chronological order (403 not owner, 404 absent)."""
    return await run_in_threadpool(get_conversation_detail, conversation_id=conversation_id, user_id=user.id)
