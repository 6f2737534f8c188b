"""Unit tests for the conversation store."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from nova.database.core.conversations import (
    append_message,
    complete_exchange,
    create_conversation,
    fetch_conversation,
    get_conversation_detail,
    list_conversations,
    list_messages,
    set_title_if_unset,
    touch_updated_at,
)
from nova.database.core.exceptions import NotFoundError, PermissionDeniedError
from nova.database.entities.messages import MessageRole


class TestCreateConversation:
    def test_new_conversation_is_untitled(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)

        assert conversation["title"] is None
        assert conversation["user_id"] == world.member.id
        assert conversation["group_id"] == world.group.id
        assert fetch_conversation(conversation_id=conversation["id"])["id"] == conversation["id"]

    def test_fetch_missing_conversation_returns_none(self, engine) -> None:
        assert fetch_conversation(conversation_id=uuid.uuid4()) is None


class TestMessages:
    @pytest.fixture
    def conversation(self, world) -> dict:
        return create_conversation(user_id=world.member.id, group_id=world.group.id)

    def test_messages_listed_in_append_order(self, conversation) -> None:
        for index in range(5):
            role = MessageRole.user if index % 2 == 0 else MessageRole.assistant
            append_message(conversation_id=conversation["id"], role=role, content=f"m{index}")

        messages = list_messages(conversation_id=conversation["id"])

        assert [m["content"] for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
        assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant", "user"]

    def test_created_at_strictly_increases_even_on_clock_skew(self, conversation, monkeypatch) -> None:
        """A clock that does not advance still yields increasing timestamps."""
        frozen = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

        class FrozenDatetime(datetime):
            @classmethod
            def now(cls, tz=None):
                return frozen

        monkeypatch.setattr("nova.database.core.conversations.datetime", FrozenDatetime)
        first = append_message(conversation_id=conversation["id"], role=MessageRole.user, content="a")
        second = append_message(conversation_id=conversation["id"], role=MessageRole.assistant, content="b")
        third = append_message(conversation_id=conversation["id"], role=MessageRole.user, content="c")

        assert first["created_at"] < second["created_at"] < third["created_at"]
        assert second["created_at"] - first["created_at"] == timedelta(microseconds=1)

    def test_content_is_stored_verbatim(self, conversation) -> None:
        content = "  Multi\nline with trailing space  "
        append_message(conversation_id=conversation["id"], role=MessageRole.user, content=content)

        assert list_messages(conversation_id=conversation["id"])[0]["content"] == content

    def test_append_to_missing_conversation_raises(self, engine) -> None:
        with pytest.raises(NotFoundError):
            append_message(conversation_id=uuid.uuid4(), role=MessageRole.user, content="x")

    def test_empty_conversation_lists_nothing(self, conversation) -> None:
        assert list_messages(conversation_id=conversation["id"]) == []


class TestTitle:
    def test_title_is_set_once(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)

        assert set_title_if_unset(conversation_id=conversation["id"], title="First") is True
        assert set_title_if_unset(conversation_id=conversation["id"], title="Second") is False
        assert fetch_conversation(conversation_id=conversation["id"])["title"] == "First"

    def test_complete_exchange_stores_answer_title_and_timestamp(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=conversation["id"], role=MessageRole.user, content="Hi")

        message = complete_exchange(conversation_id=conversation["id"], content="Hello there", title="Hi")

        stored = fetch_conversation(conversation_id=conversation["id"])
        assert message["role"] == "assistant"
        assert stored["title"] == "Hi"
        assert stored["updated_at"] >= conversation["updated_at"]
        assert [m["content"] for m in list_messages(conversation_id=conversation["id"])] == ["Hi", "Hello there"]

    def test_complete_exchange_keeps_existing_title(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)
        set_title_if_unset(conversation_id=conversation["id"], title="Kept")

        complete_exchange(conversation_id=conversation["id"], content="answer", title="Other")

        assert fetch_conversation(conversation_id=conversation["id"])["title"] == "Kept"


class TestConversationViews:
    def test_detail_includes_group_and_messages(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=conversation["id"], role=MessageRole.user, content="Hi")

        detail = get_conversation_detail(conversation_id=conversation["id"], user_id=world.member.id)

        assert detail["conversation"]["group"]["name"] == "Legal"
        assert detail["conversation"]["group"]["organization_name"] == "Acme"
        assert [m["content"] for m in detail["messages"]] == ["Hi"]

    def test_detail_denied_for_other_user(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)

        with pytest.raises(PermissionDeniedError):
            get_conversation_detail(conversation_id=conversation["id"], user_id=world.admin.id)

    def test_detail_of_missing_conversation(self, world) -> None:
        with pytest.raises(NotFoundError):
            get_conversation_detail(conversation_id=uuid.uuid4(), user_id=world.member.id)

    def test_list_is_most_recent_first_with_last_message(self, world) -> None:
        older = create_conversation(user_id=world.member.id, group_id=world.group.id)
        newer = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=older["id"], role=MessageRole.user, content="old question")
        touch_updated_at(conversation_id=older["id"])

        conversations = list_conversations(user_id=world.member.id)

        assert [c["id"] for c in conversations] == [older["id"], newer["id"]]
        assert conversations[0]["last_message"]["content"] == "old question"
        assert conversations[1]["last_message"] is None

    def test_list_only_contains_own_conversations(self, world) -> None:
        create_conversation(user_id=world.admin.id, group_id=world.group.id)

        assert list_conversations(user_id=world.member.id) == []
