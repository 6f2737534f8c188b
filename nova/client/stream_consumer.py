"""
Chat stream consumer
====================

Client side of ``POST /api/chat``. A ``ChatSession`` keeps the visible
message list of one conversation and drives one turn at a time:

- the user message and an empty assistant placeholder are appended;
- the request is sent as one long-lived streaming POST;
- ``data: <json>`` lines are applied in arrival order: ``conversationId`` is
  adopted, ``content`` is appended to the placeholder, ``error`` removes the
  placeholder and raises ``ChatStreamError``, ``[DONE]`` ends the turn;
- ``stop()`` cancels the request so the server observes a disconnect; the
  partial answer stays in the list.

Usage
-----
    async with httpx.AsyncClient(base_url="http://localhost:8000", cookies=...) as http:
        session = ChatSession(http, group_id)
        answer = await session.send_message("What is our leave policy?")
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"


class ChatStreamError(Exception):
    """The server refused the turn or reported an error mid-stream."""

    def __init__(self, detail: str, status_code: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class ChatTurnInProgress(Exception):
    """A turn is still streaming; only one may be outstanding at a time."""


@dataclass(frozen=True)
class StreamEvent:
    """
    One decoded frame.

    kind is ``conversation_id``, ``content``, ``error`` or ``done``; value is
    None for ``done``.
    """

    kind: str
    value: Optional[str] = None


@dataclass
class ChatMessage:
    role: str
    content: str
    id: Optional[str] = None


def parse_event_line(line: str) -> Optional[StreamEvent]:
    """
    Decode one line of the event stream.

    Returns None for blank lines, lines without the ``data:`` prefix,
    malformed JSON and payloads carrying none of the known keys.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if data == DONE_MARKER:
        return StreamEvent("done")
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed event: %s", data)
        return None
    if not isinstance(payload, dict):
        return None
    if "conversationId" in payload:
        return StreamEvent("conversation_id", str(payload["conversationId"]))
    if "content" in payload:
        return StreamEvent("content", payload["content"])
    if "error" in payload:
        return StreamEvent("error", payload["error"])
    return None


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("detail") or payload.get("error") or payload)
    return str(payload)


class ChatSession:
    """
    One conversation as seen by a chat client.

    Parameters
    ----------
    client : httpx.AsyncClient
        Authenticated client whose ``base_url`` points at the service.
    group_id : str
        Group the conversation belongs to.
    conversation_id : str | None
        Existing conversation; None starts a new one on the first send.
    """

    chat_path = "/api/chat"

    def __init__(self, client: httpx.AsyncClient, group_id: str, conversation_id: Optional[str] = None) -> None:
        self.client = client
        self.group_id = str(group_id)
        self.conversation_id = conversation_id
        self.messages: List[ChatMessage] = []
        self._stream_task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def is_streaming(self) -> bool:
        return self._stream_task is not None

    async def send_message(self, content: str) -> ChatMessage:
        """
        Run one turn and return the assistant message.

        Raises
        ------
        ChatTurnInProgress
            Another turn is still streaming.
        ChatStreamError
            Non-2xx response, transport failure or an ``{error}`` frame. The
            assistant placeholder is removed; the user message stays.
        """
        if self.is_streaming:
            raise ChatTurnInProgress("A response is still streaming")
        if not content.strip():
            raise ValueError("Message is required")

        self.messages.append(ChatMessage(role="user", content=content))
        assistant = ChatMessage(role="assistant", content="")
        self.messages.append(assistant)

        self._stopped = False
        self._stream_task = asyncio.ensure_future(self._consume(content, assistant))
        try:
            await self._stream_task
        except asyncio.CancelledError:
            if not self._stopped:
                raise
            logger.info("Stopped streaming after %d characters", len(assistant.content))
        except ChatStreamError:
            self.messages.remove(assistant)
            raise
        finally:
            self._stream_task = None
        return assistant

    async def _consume(self, content: str, assistant: ChatMessage) -> None:
        body = {"message": content, "groupId": self.group_id}
        if self.conversation_id:
            body["conversationId"] = self.conversation_id
        try:
            async with self.client.stream("POST", self.chat_path, json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ChatStreamError(_error_detail(response), status_code=response.status_code)
                async for line in response.aiter_lines():
                    event = parse_event_line(line)
                    if event is None:
                        continue
                    if event.kind == "conversation_id":
                        self.conversation_id = event.value
                    elif event.kind == "content":
                        assistant.content += event.value
                    elif event.kind == "error":
                        raise ChatStreamError(event.value)
                    else:
                        return
        except httpx.HTTPError as e:
            raise ChatStreamError(f"Request failed: {e}") from e
        logger.warning("Stream for conversation %s ended without a completion marker", self.conversation_id)

    def stop(self) -> None:
        """Abort the turn in flight; no-op when nothing is streaming."""
        if self._stream_task is not None and not self._stream_task.done():
            self._stopped = True
            self._stream_task.cancel()

    async def load_conversation(self, conversation_id: str) -> List[ChatMessage]:
        """
        Replace the visible messages with a stored conversation.

        Raises
        ------
        ChatStreamError
            The conversation cannot be read (403/404).
        """
        if self.is_streaming:
            raise ChatTurnInProgress("A response is still streaming")
        response = await self.client.get(f"{self.chat_path}/{conversation_id}")
        if response.status_code >= 400:
            raise ChatStreamError(_error_detail(response), status_code=response.status_code)
        payload = response.json()
        conversation = payload["conversation"]
        self.conversation_id = str(conversation["id"])
        self.group_id = str(conversation["groupId"])
        self.messages = [
            ChatMessage(role=message["role"], content=message["content"], id=message.get("id"))
            for message in payload["messages"]
        ]
        return self.messages

    async def reload(self) -> ChatMessage:
        """Drop the trailing assistant message and send the last user message again."""
        if self.is_streaming:
            raise ChatTurnInProgress("A response is still streaming")
        if self.messages and self.messages[-1].role == "assistant":
            self.messages.pop()
        if not self.messages or self.messages[-1].role != "user":
            raise ValueError("No user message to resend")
        last = self.messages.pop()
        return await self.send_message(last.content)
