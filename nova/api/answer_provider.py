"""
Answer providers — streaming answer backends for chat turns.
=============================================================

An answer provider turns an ``AnswerContext`` (bounded history + the new user
message + the group's knowledge-base reference) into a lazy, finite async
stream of text fragments whose concatenation is the full answer.

Backends
--------
- ``ChatCompletionAnswerProvider``
    LangChain ``ChatOpenAI.astream`` over ``[system] + history + [user]``.
    Natively incremental: one fragment per non-empty model chunk.
- ``AutoRAGAnswerProvider``
    Cloudflare AutoRAG ``ai-search`` over a single query string built from the
    recent transcript. Either requests an SSE stream (``native_streaming``) or
    fetches the complete answer and re-chunks it word by word with a fixed
    inter-chunk delay. Also exposes retrieval and document sync.

Errors
------
Every backend failure (transport, HTTP status, ``success: false`` payloads,
model exceptions) surfaces as a single ``AnswerProviderError``, raised either
before the first fragment or mid-iteration. Cancellation is never wrapped.

Providers never touch the conversation store.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional, Protocol, Sequence

import httpx
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10
"""Number of prior messages forwarded to the provider with each turn."""

NOVA_SYSTEM_PROMPT = """You are Nova, an intelligent AI assistant designed to help organizations access and understand their knowledge bases. You retrieve relevant information from uploaded documents and provide accurate, helpful responses based on that context.

Your Personality:
- Professional yet approachable
- Clear and concise in explanations
- Patient and helpful with follow-up questions
- Confident but acknowledges limitations

Your Capabilities:
- Answer questions using the organization's uploaded documents as context
- Provide citations to source documents when relevant
- Explain complex information in accessible ways
- Assist with code, technical documentation, and business documents
- Format responses with proper markdown, including code blocks with syntax highlighting

Your Guidelines:
- Always prioritize information from the provided context over general knowledge
- If the context doesn't contain relevant information, clearly state this
- When citing sources, reference the specific document name
- Be honest about uncertainty rather than making assumptions
- Keep responses focused and relevant to the user's question
- For code-related queries, provide properly formatted, syntax-highlighted code blocks

Your Limitations:
- You can only access documents that have been uploaded to the current group's knowledge base
- You cannot access real-time information or browse the internet
- You cannot perform actions outside of providing information and answers

Always aim to be the most helpful knowledge assistant possible while staying grounded in the available context."""


class AnswerProviderError(Exception):
    """The answer backend failed. `status_code` is set for HTTP failures."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str


@dataclass(frozen=True)
class AnswerContext:
    """
    Input of one answer request.

    Attributes
    ----------
    message : str
        The new user message.
    history : tuple[ChatTurn, ...]
        Up to ``HISTORY_WINDOW`` prior messages, oldest first.
    rag_id : str | None
        Knowledge-base instance of the conversation's group.
    """

    message: str
    history: tuple = field(default_factory=tuple)
    rag_id: Optional[str] = None


class AnswerProvider(Protocol):
    def stream_answer(self, context: AnswerContext) -> AsyncIterator[str]:
        """Lazily yield the answer fragments in emission order."""
        ...

    async def aclose(self) -> None:
        ...


def lc_text_from_content(content) -> str:
    """Normalize LangChain message content to plain text.

    - If string → return as-is.
    - If list of content parts → concatenates only 'text' parts.
    - Else → str(content).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(p.get("text", "") for p in content if isinstance(p, dict) and p.get("type") == "text")
    return str(content)


# ----------------------------------------------------------------------
# Chat completion (LangChain)
# ----------------------------------------------------------------------
class ChatCompletionAnswerProvider:
    """
    Streams answers from a LangChain chat model.

    Parameters
    ----------
    model : BaseChatModel
        Any LangChain chat model; ``ChatOpenAI`` in production.
    system_prompt : str
        Prepended as a ``SystemMessage``.
    """

    def __init__(self, model: BaseChatModel, system_prompt: str = NOVA_SYSTEM_PROMPT) -> None:
        self.model = model
        self.system_prompt = system_prompt

    @classmethod
    def from_settings(cls, settings) -> "ChatCompletionAnswerProvider":
        model = ChatOpenAI(
            model=settings.OPEN_AI_MODEL,
            api_key=settings.API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            temperature=settings.OPENAI_TEMPERATURE,
            timeout=settings.ANSWER_PROVIDER_TIMEOUT_SECONDS,
            streaming=True,
        )
        return cls(model)

    def build_messages(self, context: AnswerContext) -> list[BaseMessage]:
        messages: list[BaseMessage] = [SystemMessage(content=self.system_prompt)]
        for turn in context.history:
            if turn.role == "assistant":
                messages.append(AIMessage(content=turn.content))
            else:
                messages.append(HumanMessage(content=turn.content))
        messages.append(HumanMessage(content=context.message))
        return messages

    async def stream_answer(self, context: AnswerContext) -> AsyncIterator[str]:
        messages = self.build_messages(context)
        try:
            async for chunk in self.model.astream(messages):
                content = chunk.content if hasattr(chunk, "content") else chunk
                text = lc_text_from_content(content)
                if text:
                    yield text
        except AnswerProviderError:
            raise
        except Exception as e:
            logger.error("Chat completion failed: %s", e)
            raise AnswerProviderError(f"Chat completion failed: {e}") from e

    async def aclose(self) -> None:
        return None


# ----------------------------------------------------------------------
# Cloudflare AutoRAG
# ----------------------------------------------------------------------
def build_transcript_query(context: AnswerContext) -> str:
    """
    Fold the bounded history and the new message into one query string.

    Without history the query is the message itself; otherwise each turn is
    rendered as ``User: ...`` / ``Assistant: ...`` on its own line, ending with
    the new user turn.
    """
    if not context.history:
        return context.message
    lines = [
        f"{'Assistant' if turn.role == 'assistant' else 'User'}: {turn.content}"
        for turn in context.history
    ]
    lines.append(f"User: {context.message}")
    return "\n".join(lines)


def rechunk_words(answer: str) -> list[str]:
    """Split a complete answer into word fragments: ``word + " "``, the last word bare."""
    words = answer.split(" ")
    fragments = [word + " " for word in words[:-1]]
    fragments.append(words[-1])
    return [fragment for fragment in fragments if fragment]


class AutoRAGAnswerProvider:
    """
    Client for the Cloudflare AutoRAG REST API.

    Parameters
    ----------
    account_id : str
        Cloudflare account hosting the AutoRAG instances.
    api_key : str
        Bearer token with AutoRAG permissions.
    default_rag_id : str | None
        Instance used when the conversation's group has none.
    client : httpx.AsyncClient | None
        Pre-built client (tests inject one backed by ``httpx.MockTransport``).
    timeout : float
        Request timeout in seconds for the default client.
    native_streaming : bool
        Request an SSE stream instead of re-chunking a complete answer.
    chunk_delay : float
        Pause between re-chunked words, in seconds.
    """

    BASE_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}"

    def __init__(
        self,
        account_id: str,
        api_key: str,
        default_rag_id: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        native_streaming: bool = False,
        chunk_delay: float = 0.01,
        system_prompt: str = NOVA_SYSTEM_PROMPT,
    ) -> None:
        self.account_id = account_id
        self.default_rag_id = default_rag_id
        self.native_streaming = native_streaming
        self.chunk_delay = chunk_delay
        self.system_prompt = system_prompt
        self.base_url = self.BASE_URL.format(account_id=account_id)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    @classmethod
    def from_settings(cls, settings) -> "AutoRAGAnswerProvider":
        if not settings.CLOUDFLARE_ACCOUNT_ID or not settings.CLOUDFLARE_AI_SEARCH_API_KEY:
            raise RuntimeError(
                "CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_AI_SEARCH_API_KEY environment variables must be set"
            )
        return cls(
            account_id=settings.CLOUDFLARE_ACCOUNT_ID,
            api_key=settings.CLOUDFLARE_AI_SEARCH_API_KEY,
            default_rag_id=settings.AUTORAG_DEFAULT_RAG_ID,
            timeout=settings.ANSWER_PROVIDER_TIMEOUT_SECONDS,
            native_streaming=settings.AUTORAG_NATIVE_STREAMING,
            chunk_delay=settings.AUTORAG_CHUNK_DELAY_SECONDS,
        )

    def resolve_rag_id(self, rag_id: Optional[str]) -> str:
        resolved = rag_id or self.default_rag_id
        if not resolved:
            raise AnswerProviderError("No AutoRAG instance is configured for this group")
        return resolved

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        text = response.text
        try:
            payload = response.json()
            messages = ", ".join(e.get("message", "") for e in payload.get("errors") or [])
        except (ValueError, AttributeError):
            messages = ""
        return f"Cloudflare AutoRAG API error ({response.status_code}): {messages or text}"

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("AutoRAG request to %s failed: %s", path, e)
            raise AnswerProviderError(f"Cloudflare AutoRAG request failed: {e}") from e

        logger.info("AutoRAG %s %s -> %s", method, path, response.status_code)
        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error(message)
            raise AnswerProviderError(message, status_code=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise AnswerProviderError("Cloudflare AutoRAG returned invalid JSON") from e
        if not data.get("success"):
            errors = ", ".join(e.get("message", "") for e in data.get("errors") or []) or "Unknown error"
            raise AnswerProviderError(f"AutoRAG request failed: {errors}")
        return data

    async def query(self, rag_id: str, query: str) -> dict:
        """
        Run one ``ai-search`` request.

        Returns
        -------
        dict
            The ``result`` object: ``response`` (answer text), ``data``
            (retrieved chunks), ``search_query`` ...
        """
        data = await self._request(
            "POST",
            f"/autorag/rags/{rag_id}/ai-search",
            json={"query": query, "system_prompt": self.system_prompt},
        )
        return data.get("result") or {}

    async def retrieved_documents(self, rag_id: str, query: str) -> list:
        """Chunks retrieved for `query`, without using the generated answer."""
        result = await self.query(rag_id, query)
        return result.get("data") or []

    async def sync_documents(self, rag_id: Optional[str] = None) -> str:
        """
        Ask AutoRAG to (re)index the bucket behind `rag_id`.

        Returns
        -------
        str
            The sync job id.
        """
        resolved = self.resolve_rag_id(rag_id)
        data = await self._request("PATCH", f"/autorag/rags/{resolved}/sync")
        job_id = (data.get("result") or {}).get("job_id")
        logger.info("AutoRAG sync job %s started for %s", job_id, resolved)
        return job_id

    async def _stream_native(self, rag_id: str, query: str) -> AsyncIterator[str]:
        url = f"{self.base_url}/autorag/rags/{rag_id}/ai-search"
        body = {"query": query, "system_prompt": self.system_prompt, "stream": True}
        try:
            async with self._client.stream("POST", url, headers=self._headers, json=body) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise AnswerProviderError(self._error_message(response), status_code=response.status_code)
                async for line in response.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    try:
                        payload = json.loads(data)
                    except json.JSONDecodeError:
                        continue
                    text = payload.get("response")
                    if text:
                        yield text
        except httpx.HTTPError as e:
            logger.error("AutoRAG stream failed: %s", e)
            raise AnswerProviderError(f"Cloudflare AutoRAG request failed: {e}") from e

    async def stream_answer(self, context: AnswerContext) -> AsyncIterator[str]:
        rag_id = self.resolve_rag_id(context.rag_id)
        query = build_transcript_query(context)
        if self.native_streaming:
            async for fragment in self._stream_native(rag_id, query):
                yield fragment
            return

        result = await self.query(rag_id, query)
        answer = result.get("response")
        if not isinstance(answer, str):
            raise AnswerProviderError("AutoRAG response did not contain an answer")
        fragments = rechunk_words(answer)
        for index, fragment in enumerate(fragments):
            yield fragment
            if index < len(fragments) - 1 and self.chunk_delay > 0:
                await asyncio.sleep(self.chunk_delay)

    async def aclose(self) -> None:
        await self._client.aclose()


def build_rag_client(settings) -> Optional[AutoRAGAnswerProvider]:
    """AutoRAG client when Cloudflare credentials are configured, else None."""
    if not settings.CLOUDFLARE_ACCOUNT_ID or not settings.CLOUDFLARE_AI_SEARCH_API_KEY:
        return None
    return AutoRAGAnswerProvider.from_settings(settings)


def build_answer_provider(settings, rag_client: Optional[AutoRAGAnswerProvider] = None):
    """
    Construct the answer provider selected by ``ANSWER_PROVIDER``.

    Raises
    ------
    RuntimeError
        ``autorag`` is selected but Cloudflare credentials are missing.
    """
    if settings.ANSWER_PROVIDER == "chat":
        return ChatCompletionAnswerProvider.from_settings(settings)
    return rag_client or AutoRAGAnswerProvider.from_settings(settings)


def history_window(messages: Sequence[dict], window: int = HISTORY_WINDOW) -> tuple:
    """The last `window` stored messages as ``ChatTurn`` values, oldest first."""
    recent = messages[-window:] if window > 0 else []
    return tuple(ChatTurn(role=message["role"], content=message["content"]) for message in recent)
