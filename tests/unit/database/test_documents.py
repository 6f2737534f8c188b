"""Unit tests for document services."""

from __future__ import annotations

import uuid

import pytest

from nova.database.core.documents import (
    create_document,
    delete_document,
    get_document,
    list_organization_documents,
    record_index_reference,
    update_embedding_status,
)
from nova.database.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from nova.database.core.organizations import create_group, create_organization


def _document(world, **overrides) -> dict:
    values = {
        "user_id": world.admin.id,
        "organization_id": world.organization.id,
        "filename": "policy.pdf",
        "file_type": "application/pdf",
        "file_size": 2048,
        "storage_key": f"{world.organization.id}/policy.pdf",
    }
    values.update(overrides)
    return create_document(**values)


class TestCreateDocument:
    def test_org_wide_assigns_every_group(self, world) -> None:
        document = _document(world, is_org_wide=True)

        assert set(document["group_ids"]) == {world.group.id, world.other_group.id}
        assert document["embedding_status"] == "pending"

    def test_explicit_groups(self, world) -> None:
        document = _document(world, group_ids=[world.group.id, world.group.id])

        assert document["group_ids"] == [world.group.id]
        assert get_document(document_id=document["id"])["group_ids"] == [world.group.id]

    def test_requires_a_group(self, world) -> None:
        with pytest.raises(InvalidRequestError):
            _document(world, group_ids=[])

    def test_rejects_groups_of_other_organizations(self, world) -> None:
        other = create_organization(user_id=world.outsider.id, name="Elsewhere")
        foreign = create_group(user_id=world.outsider.id, organization_id=other["id"], name="Ops")

        with pytest.raises(InvalidRequestError):
            _document(world, group_ids=[world.group.id, foreign["id"]])

    def test_org_wide_snapshot_excludes_later_groups(self, world) -> None:
        document = _document(world, is_org_wide=True)
        create_group(user_id=world.admin.id, organization_id=world.organization.id, name="Later")

        assert len(get_document(document_id=document["id"])["group_ids"]) == 2


class TestListAndDelete:
    def test_list_has_uploader(self, world) -> None:
        _document(world, is_org_wide=True)

        documents = list_organization_documents(organization_id=world.organization.id)

        assert len(documents) == 1
        assert documents[0]["uploader"]["email"] == "admin@acme.test"

    def test_delete_returns_storage_key(self, world) -> None:
        document = _document(world, is_org_wide=True)

        deleted = delete_document(document_id=document["id"])

        assert deleted["storage_key"] == document["storage_key"]
        with pytest.raises(NotFoundError):
            get_document(document_id=document["id"])

    def test_record_index_reference(self, world) -> None:
        document = _document(world, is_org_wide=True)

        record_index_reference(document_id=document["id"], rag_index_id="job-42")

        assert get_document(document_id=document["id"])["rag_index_id"] == "job-42"


class TestEmbeddingStatus:
    def test_pending_to_completed(self, world) -> None:
        document = _document(world, is_org_wide=True)

        updated = update_embedding_status(document_id=document["id"], status="completed", rag_index_id="idx-1")

        assert updated["embedding_status"] == "completed"
        assert updated["rag_index_id"] == "idx-1"

    def test_terminal_status_cannot_change(self, world) -> None:
        document = _document(world, is_org_wide=True)
        update_embedding_status(document_id=document["id"], status="failed")

        with pytest.raises(ConflictError):
            update_embedding_status(document_id=document["id"], status="completed")

    @pytest.mark.parametrize("status", ["pending", "indexed"])
    def test_invalid_target(self, world, status) -> None:
        document = _document(world, is_org_wide=True)

        with pytest.raises(InvalidRequestError):
            update_embedding_status(document_id=document["id"], status=status)

    def test_missing_document(self, engine) -> None:
        with pytest.raises(NotFoundError):
            update_embedding_status(document_id=uuid.uuid4(), status="completed")
