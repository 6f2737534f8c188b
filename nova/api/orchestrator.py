"""
Streaming orchestrator — one chat turn from request to ``[DONE]``.
==================================================================

A turn runs in two phases.

``begin_turn`` (before any byte is streamed; failures become HTTP errors)
    VALIDATING → RESOLVING_CONVERSATION → PERSISTING_USER_MESSAGE
    - message must be a non-blank string, group id a UUID (400)
    - the caller must be an explicit member of the group (403, nothing written)
    - a supplied conversation must belong to the caller and to the group (403)
    - otherwise a new untitled conversation is created
    - the prior messages are read, then the user message is appended

``stream_turn`` (server-sent events; failures become in-band ``{error}`` frames)
    REQUESTING_ANSWER → STREAMING_FRAGMENTS → FINALIZING → DONE
    - the ``{conversationId}`` frame is written before the provider is called
    - a producer task pulls fragments from the answer provider into a bounded
      queue; the response writer relays one ``{content}`` frame per fragment
    - on success the assistant message, the ``updated_at`` bump and (first
      exchange only) the title are persisted together, then ``[DONE]`` is sent
    - a provider failure sends ``{error}`` and ends the turn in FAILED; the
      user message stays, no assistant message is written
    - a client disconnect cancels the producer and ends the turn in ABORTED
      without persisting anything further

Wire format: ``data: <json>\\n\\n`` per frame, ``data: [DONE]\\n\\n`` terminator.
"""

import asyncio
import contextlib
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional
from uuid import UUID

from starlette.concurrency import run_in_threadpool

from nova.api.answer_provider import AnswerContext, AnswerProvider, AnswerProviderError, history_window
from nova.database.core.access import is_member_of_group
from nova.database.core.conversations import (
    append_message,
    complete_exchange,
    create_conversation,
    fetch_conversation,
    list_messages,
)
from nova.database.core.exceptions import InvalidRequestError, PermissionDeniedError
from nova.database.core.organizations import get_group
from nova.database.entities.messages import MessageRole

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50
GENERATION_ERROR = "Failed to generate response"
PERSISTENCE_ERROR = "Failed to save response"
DONE_EVENT = "data: [DONE]\n\n"


class TurnState(str, enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESOLVING_CONVERSATION = "resolving_conversation"
    PERSISTING_USER_MESSAGE = "persisting_user_message"
    REQUESTING_ANSWER = "requesting_answer"
    STREAMING_FRAGMENTS = "streaming_fragments"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class ChatTurn:
    """State carried from `begin_turn` to `stream_turn`."""

    user_id: UUID
    group_id: UUID
    conversation_id: UUID
    message: str
    context: AnswerContext
    first_exchange: bool
    state: TurnState = TurnState.IDLE


def format_event(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def propose_title(message: str) -> str:
    """First 50 characters of the message, with ``...`` when it was longer."""
    if len(message) > TITLE_MAX_LENGTH:
        return message[:TITLE_MAX_LENGTH] + "..."
    return message


def _parse_uuid(value: Any, detail: str) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidRequestError(detail)


def parse_turn_request(body: Any) -> tuple[str, UUID, Optional[UUID]]:
    """
    Validate a chat request body.

    Returns
    -------
    tuple[str, UUID, UUID | None]
        (message, group id, conversation id or None)

    Raises
    ------
    InvalidRequestError
        Missing/blank message, missing or malformed ids.
    """
    if not isinstance(body, dict):
        raise InvalidRequestError("Message is required")
    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        raise InvalidRequestError("Message is required")
    group_id = body.get("groupId")
    if not group_id:
        raise InvalidRequestError("Group ID is required")
    conversation_id = body.get("conversationId")
    return (
        message,
        _parse_uuid(group_id, "Invalid group ID"),
        _parse_uuid(conversation_id, "Invalid conversation ID") if conversation_id else None,
    )


class _End:
    pass


@dataclass
class _ProducerFailure:
    error: BaseException


class StreamingOrchestrator:
    """
    Runs chat turns against an answer provider.

    Parameters
    ----------
    answer_provider : AnswerProvider
        Backend producing the answer fragments.
    queue_size : int
        Fragments buffered between the producer task and the response writer.
    fragment_timeout : float | None
        Longest wait for the next fragment before the turn fails.
    """

    def __init__(self, answer_provider: AnswerProvider, queue_size: int = 32, fragment_timeout: Optional[float] = None) -> None:
        self.answer_provider = answer_provider
        self.queue_size = queue_size
        self.fragment_timeout = fragment_timeout

    async def begin_turn(self, user_id: UUID, body: Any) -> ChatTurn:
        """
        Validate the request, resolve the conversation and store the user message.

        Raises
        ------
        InvalidRequestError
            Invalid request body (400).
        PermissionDeniedError
            Not a member of the group, or not allowed to use the conversation (403).
        """
        state = TurnState.VALIDATING
        message, group_id, conversation_id = parse_turn_request(body)

        state = TurnState.RESOLVING_CONVERSATION
        if not await run_in_threadpool(is_member_of_group, user_id=user_id, group_id=group_id):
            raise PermissionDeniedError("Access denied to this group")
        group = await run_in_threadpool(get_group, group_id=group_id)

        if conversation_id is None:
            conversation = await run_in_threadpool(create_conversation, user_id=user_id, group_id=group_id)
            conversation_id = conversation["id"]
        else:
            conversation = await run_in_threadpool(fetch_conversation, conversation_id=conversation_id)
            if conversation is None or conversation["user_id"] != user_id:
                raise PermissionDeniedError("Access denied to this conversation")
            if conversation["group_id"] != group_id:
                raise PermissionDeniedError("Conversation belongs to another group")

        state = TurnState.PERSISTING_USER_MESSAGE
        prior_messages = await run_in_threadpool(list_messages, conversation_id=conversation_id)
        await run_in_threadpool(
            append_message, conversation_id=conversation_id, role=MessageRole.user, content=message
        )

        return ChatTurn(
            user_id=user_id,
            group_id=group_id,
            conversation_id=conversation_id,
            message=message,
            context=AnswerContext(
                message=message,
                history=history_window(prior_messages),
                rag_id=group["rag_instance_id"],
            ),
            first_exchange=len(prior_messages) == 0,
            state=state,
        )

    async def _produce(self, context: AnswerContext, queue: asyncio.Queue) -> None:
        try:
            async with contextlib.aclosing(self.answer_provider.stream_answer(context)) as fragments:
                async for fragment in fragments:
                    await queue.put(fragment)
        except AnswerProviderError as e:
            await queue.put(_ProducerFailure(e))
            return
        except Exception as e:
            logger.exception("Answer provider raised an unexpected error")
            await queue.put(_ProducerFailure(e))
            return
        await queue.put(_End())

    async def _next_item(self, queue: asyncio.Queue):
        if self.fragment_timeout is None:
            return await queue.get()
        try:
            return await asyncio.wait_for(queue.get(), self.fragment_timeout)
        except asyncio.TimeoutError:
            return _ProducerFailure(AnswerProviderError("Timed out waiting for the answer provider"))

    async def stream_turn(self, turn: ChatTurn) -> AsyncIterator[str]:
        """
        Server-sent event frames for a turn prepared by `begin_turn`.

        Yields
        ------
        str
            ``data: {"conversationId": ...}``, then ``data: {"content": ...}``
            per fragment, then ``data: [DONE]`` or ``data: {"error": ...}``.
        """
        yield format_event({"conversationId": str(turn.conversation_id)})

        turn.state = TurnState.REQUESTING_ANSWER
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        producer = asyncio.create_task(self._produce(turn.context, queue))
        fragments: list[str] = []
        try:
            turn.state = TurnState.STREAMING_FRAGMENTS
            while True:
                item = await self._next_item(queue)
                if isinstance(item, _End):
                    break
                if isinstance(item, _ProducerFailure):
                    turn.state = TurnState.FAILED
                    logger.error(
                        "Answer generation failed for conversation %s: %s", turn.conversation_id, item.error
                    )
                    yield format_event({"error": GENERATION_ERROR})
                    return
                fragments.append(item)
                yield format_event({"content": item})
        except (asyncio.CancelledError, GeneratorExit):
            turn.state = TurnState.ABORTED
            logger.info(
                "Client disconnected from conversation %s after %d fragments", turn.conversation_id, len(fragments)
            )
            raise
        finally:
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer

        turn.state = TurnState.FINALIZING
        title = propose_title(turn.message) if turn.first_exchange else None
        try:
            await run_in_threadpool(
                complete_exchange,
                conversation_id=turn.conversation_id,
                content="".join(fragments),
                title=title,
            )
        except Exception:
            turn.state = TurnState.FAILED
            logger.exception("Failed to persist the answer for conversation %s", turn.conversation_id)
            yield format_event({"error": PERSISTENCE_ERROR})
            return

        turn.state = TurnState.DONE
        yield DONE_EVENT
