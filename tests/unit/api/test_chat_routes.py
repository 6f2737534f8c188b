"""Route tests for chat streaming and conversation views."""

from __future__ import annotations

import json
import uuid

import pytest
from conftest import FakeAnswerProvider, auth_headers

from nova.database.core.conversations import append_message, create_conversation, list_messages, touch_updated_at
from nova.database.entities.messages import MessageRole


def sse_frames(body: str) -> list:
    frames = []
    for block in body.split("\n\n"):
        if not block:
            continue
        assert block.startswith("data: ")
        data = block[len("data: "):]
        frames.append(data if data == "[DONE]" else json.loads(data))
    return frames


class TestChatStream:
    def test_streams_frames_and_persists(self, client, world) -> None:
        response = client.post(
            "/api/chat",
            json={"message": "What is our NDA policy?", "groupId": str(world.group.id)},
            headers=auth_headers(world.member),
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        frames = sse_frames(response.text)
        conversation_id = uuid.UUID(frames[0]["conversationId"])
        assert frames[1:] == [{"content": "Hello"}, {"content": " there"}, "[DONE]"]
        assert [m["content"] for m in list_messages(conversation_id=conversation_id)] == [
            "What is our NDA policy?",
            "Hello there",
        ]

    def test_continues_existing_conversation(self, client, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)

        response = client.post(
            "/api/chat",
            json={"message": "Hi", "groupId": str(world.group.id), "conversationId": str(conversation["id"])},
            headers=auth_headers(world.member),
        )

        assert sse_frames(response.text)[0] == {"conversationId": str(conversation["id"])}

    @pytest.mark.parametrize(
        ("payload", "detail"),
        [
            ({"groupId": "00000000-0000-0000-0000-000000000000"}, "Message is required"),
            ({"message": "Hi"}, "Group ID is required"),
            ({"message": "Hi", "groupId": "abc"}, "Invalid group ID"),
        ],
    )
    def test_invalid_body(self, client, world, payload, detail) -> None:
        response = client.post("/api/chat", json=payload, headers=auth_headers(world.member))

        assert response.status_code == 400
        assert response.json() == {"detail": detail}

    def test_malformed_json(self, client, world) -> None:
        headers = {**auth_headers(world.member), "content-type": "application/json"}

        response = client.post("/api/chat", content=b"{not json", headers=headers)

        assert response.status_code == 400

    def test_requires_authentication(self, client, world) -> None:
        response = client.post("/api/chat", json={"message": "Hi", "groupId": str(world.group.id)})

        assert response.status_code == 401

    def test_non_member_gets_403(self, client, world, answer_provider) -> None:
        response = client.post(
            "/api/chat",
            json={"message": "Hi", "groupId": str(world.other_group.id)},
            headers=auth_headers(world.member),
        )

        assert response.status_code == 403
        assert answer_provider.contexts == []

    @pytest.mark.parametrize("answer_provider", [FakeAnswerProvider(fail_after=0)])
    def test_provider_failure_is_in_band(self, client, world, answer_provider) -> None:
        response = client.post(
            "/api/chat",
            json={"message": "Hi", "groupId": str(world.group.id)},
            headers=auth_headers(world.member),
        )

        assert response.status_code == 200
        assert sse_frames(response.text)[-1] == {"error": "Failed to generate response"}


class TestConversationViews:
    def test_detail(self, client, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=conversation["id"], role=MessageRole.user, content="Q")
        append_message(conversation_id=conversation["id"], role=MessageRole.assistant, content="A")

        response = client.get(f"/api/chat/{conversation['id']}", headers=auth_headers(world.member))

        assert response.status_code == 200
        body = response.json()
        assert body["conversation"]["group"] == {
            "id": str(world.group.id),
            "name": "Legal",
            "organizationId": str(world.organization.id),
            "organizationName": "Acme",
        }
        assert [(m["role"], m["content"]) for m in body["messages"]] == [("user", "Q"), ("assistant", "A")]

    def test_detail_of_someone_elses_conversation(self, client, world) -> None:
        conversation = create_conversation(user_id=world.admin.id, group_id=world.group.id)

        response = client.get(f"/api/chat/{conversation['id']}", headers=auth_headers(world.member))

        assert response.status_code == 403

    def test_detail_not_found(self, client, world) -> None:
        response = client.get(f"/api/chat/{uuid.uuid4()}", headers=auth_headers(world.member))

        assert response.status_code == 404
        assert response.json() == {"detail": "Conversation not found"}

    def test_list(self, client, world) -> None:
        first = create_conversation(user_id=world.member.id, group_id=world.group.id)
        second = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=first["id"], role=MessageRole.user, content="latest activity")
        touch_updated_at(conversation_id=first["id"])
        create_conversation(user_id=world.admin.id, group_id=world.group.id)

        response = client.get("/api/conversations", headers=auth_headers(world.member))

        conversations = response.json()["conversations"]
        assert [c["id"] for c in conversations] == [str(first["id"]), str(second["id"])]
        assert conversations[0]["lastMessage"]["content"] == "latest activity"
        assert conversations[1]["lastMessage"] is None
