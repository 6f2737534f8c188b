"""Unit tests for organization, group and invitation services."""

from __future__ import annotations

import uuid

import pytest

from nova.database.core.access import is_member_of_group, role_in_organization
from nova.database.core.conversations import append_message, create_conversation, fetch_conversation
from nova.database.core.documents import create_document, list_organization_documents
from nova.database.core.exceptions import InvalidRequestError, NotFoundError
from nova.database.core.organizations import (
    accept_invitation,
    create_group,
    create_organization,
    delete_group,
    delete_organization,
    get_group,
    get_user_by_external_id,
    list_group_members,
    list_organization_members,
    list_user_groups,
    list_user_organizations,
    onboard_user,
    remove_member,
    update_group,
    update_member_role,
    update_organization,
)
from nova.database.entities.messages import MessageRole
from nova.database.entities.organization import OrganizationRole


class TestOnboarding:
    def test_new_organization_makes_user_admin(self, engine) -> None:
        res = onboard_user(external_id="auth0|new", email="new@x.test", name="New", organization_name="Globex")

        assert res["res"] is True
        assert res["organization"]["name"] == "Globex"
        assert res["organization"]["role"] == "admin"
        assert res["organization"]["description"] == "Globex organization"
        assert get_user_by_external_id(external_id="auth0|new")["email"] == "new@x.test"

    def test_existing_organization_grants_member_role(self, world) -> None:
        res = onboard_user(external_id="auth0|joiner", email="j@acme.test", name="Joiner", organization_name="Acme")

        assert res["res"] is True
        assert res["organization"]["id"] == world.organization.id
        assert role_in_organization(user_id=res["user"]["id"], organization_id=world.organization.id) is OrganizationRole.member

    def test_second_onboarding_is_refused(self, world) -> None:
        res = onboard_user(external_id=world.member.external_id, email="x@x.test", name="X", organization_name="Acme")

        assert res == {"res": False, "detail": "User already exists"}

    def test_unknown_subject_has_no_user(self, engine) -> None:
        assert get_user_by_external_id(external_id="auth0|nobody") is None


class TestOrganizations:
    def test_create_and_list_with_role(self, world) -> None:
        created = create_organization(user_id=world.member.id, name="Side Project", description=None)

        organizations = {o["name"]: o["role"] for o in list_user_organizations(user_id=world.member.id)}

        assert created["role"] == "admin"
        assert organizations == {"Acme": "member", "Side Project": "admin"}

    def test_update_keeps_unset_fields(self, world) -> None:
        updated = update_organization(organization_id=world.organization.id, name="Acme Corp")

        assert updated["name"] == "Acme Corp"
        assert updated["description"] == "Acme organization"

    def test_update_missing_organization(self, engine) -> None:
        with pytest.raises(NotFoundError):
            update_organization(organization_id=uuid.uuid4(), name="x")

    def test_delete_cascades_and_returns_storage_keys(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)
        append_message(conversation_id=conversation["id"], role=MessageRole.user, content="Hi")
        create_document(
            user_id=world.admin.id,
            organization_id=world.organization.id,
            filename="a.pdf",
            file_type="application/pdf",
            file_size=10,
            storage_key="org/a.pdf",
            is_org_wide=True,
        )

        keys = delete_organization(organization_id=world.organization.id)

        assert keys == ["org/a.pdf"]
        assert fetch_conversation(conversation_id=conversation["id"]) is None
        assert list_user_groups(user_id=world.member.id) == []
        assert list_organization_documents(organization_id=world.organization.id) == []
        assert role_in_organization(user_id=world.admin.id, organization_id=world.organization.id) is None


class TestMembers:
    def _membership_id(self, world, user) -> uuid.UUID:
        members = list_organization_members(organization_id=world.organization.id)
        return next(m["id"] for m in members if m["user_id"] == user.id)

    def test_list_members(self, world) -> None:
        members = list_organization_members(organization_id=world.organization.id)

        assert {m["user"]["email"] for m in members} == {"admin@acme.test", "member@acme.test"}

    def test_update_role(self, world) -> None:
        membership_id = self._membership_id(world, world.member)

        updated = update_member_role(organization_id=world.organization.id, membership_id=membership_id, role="manager")

        assert updated["role"] == "manager"

    def test_invalid_role(self, world) -> None:
        membership_id = self._membership_id(world, world.member)

        with pytest.raises(InvalidRequestError):
            update_member_role(organization_id=world.organization.id, membership_id=membership_id, role="owner")

    def test_membership_of_another_organization_is_not_found(self, world) -> None:
        other = create_organization(user_id=world.outsider.id, name="Elsewhere")
        foreign_id = next(
            m["id"] for m in list_organization_members(organization_id=other["id"])
        )

        with pytest.raises(NotFoundError):
            remove_member(organization_id=world.organization.id, membership_id=foreign_id)

    def test_remove_member_also_leaves_groups(self, world) -> None:
        membership_id = self._membership_id(world, world.member)

        remove_member(organization_id=world.organization.id, membership_id=membership_id)

        assert role_in_organization(user_id=world.member.id, organization_id=world.organization.id) is None
        assert not is_member_of_group(user_id=world.member.id, group_id=world.group.id)


class TestGroups:
    def test_creator_becomes_member(self, world) -> None:
        group = create_group(user_id=world.admin.id, organization_id=world.organization.id, name="HR")

        assert is_member_of_group(user_id=world.admin.id, group_id=group["id"])
        assert group["organization_name"] == "Acme"

    def test_get_missing_group(self, engine) -> None:
        with pytest.raises(NotFoundError):
            get_group(group_id=uuid.uuid4())

    def test_list_user_groups_scoped_to_organization(self, world) -> None:
        names = {g["name"] for g in list_user_groups(user_id=world.admin.id, organization_id=world.organization.id)}

        assert names == {"Legal", "Finance"}
        assert [g["name"] for g in list_user_groups(user_id=world.member.id)] == ["Legal"]

    def test_update_only_given_fields(self, world) -> None:
        updated = update_group(group_id=world.group.id, values={"description": "Contracts"})

        assert updated["name"] == "Legal"
        assert updated["description"] == "Contracts"
        assert updated["rag_instance_id"] == "rag-legal"

    def test_delete_group_removes_conversations(self, world) -> None:
        conversation = create_conversation(user_id=world.member.id, group_id=world.group.id)

        delete_group(group_id=world.group.id)

        assert fetch_conversation(conversation_id=conversation["id"]) is None
        assert list_group_members(group_id=world.group.id) == []


class TestInvitations:
    def test_outsider_joins_organization_and_group(self, world) -> None:
        res = accept_invitation(user_id=world.outsider.id, organization_id=world.organization.id, group_id=world.group.id)

        assert res["res"] is True
        assert res["group"]["name"] == "Legal"
        assert role_in_organization(user_id=world.outsider.id, organization_id=world.organization.id) is OrganizationRole.member
        assert is_member_of_group(user_id=world.outsider.id, group_id=world.group.id)

    def test_existing_role_is_kept(self, world) -> None:
        res = accept_invitation(user_id=world.member.id, organization_id=world.organization.id, group_id=world.other_group.id)

        assert res["res"] is True
        assert role_in_organization(user_id=world.member.id, organization_id=world.organization.id) is OrganizationRole.member

    def test_already_member(self, world) -> None:
        res = accept_invitation(user_id=world.member.id, organization_id=world.organization.id, group_id=world.group.id)

        assert res == {"res": False, "detail": "You are already a member of this group"}

    def test_deleted_group(self, world) -> None:
        res = accept_invitation(user_id=world.outsider.id, organization_id=world.organization.id, group_id=uuid.uuid4())

        assert res["res"] is False
        assert res["detail"] == "This invitation is no longer valid"
