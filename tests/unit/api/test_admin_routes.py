"""Route tests for session, onboarding, organizations, groups and invitations."""

from __future__ import annotations

import uuid

from conftest import auth_headers

from nova.database.core.access import is_member_of_group, role_in_organization
from nova.database.entities.organization import OrganizationRole


def member_id_of(client, world, user) -> str:
    members = client.get(f"/api/organizations/{world.organization.id}/members", headers=auth_headers(world.admin))
    return next(m["id"] for m in members.json()["members"] if m["userId"] == str(user.id))


class TestSession:
    def test_me_for_onboarded_user(self, client, world) -> None:
        response = client.get("/api/auth/me", headers=auth_headers(world.member))

        body = response.json()
        assert body["needsOnboarding"] is False
        assert body["user"]["email"] == "member@acme.test"
        assert body["identity"]["externalId"] == "auth0|member"

    def test_me_before_onboarding(self, client, engine) -> None:
        response = client.get("/api/auth/me", headers=auth_headers(external_id="auth0|new", email="new@x.test"))

        assert response.json()["needsOnboarding"] is True
        assert response.json()["user"] is None


class TestOnboarding:
    def test_creates_organization_as_admin(self, client, engine) -> None:
        response = client.post(
            "/api/onboarding",
            json={"name": "Nia", "email": "nia@new.test", "organizationName": "  Globex  "},
            headers=auth_headers(external_id="auth0|nia", email="nia@new.test"),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["organization"]["name"] == "Globex"
        assert body["organization"]["role"] == "admin"
        assert body["user"]["name"] == "Nia"

    def test_existing_organization_grants_member(self, client, world) -> None:
        response = client.post(
            "/api/onboarding",
            json={"name": "Joe", "email": "joe@acme.test", "organizationName": "Acme"},
            headers=auth_headers(external_id="auth0|joe", email="joe@acme.test"),
        )

        assert response.json()["organization"]["id"] == str(world.organization.id)
        assert response.json()["organization"]["role"] == "member"

    def test_missing_fields(self, client, engine) -> None:
        response = client.post(
            "/api/onboarding",
            json={"name": " ", "email": "a@b.test", "organizationName": "X"},
            headers=auth_headers(external_id="auth0|a", email="a@b.test"),
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "Missing required fields"}

    def test_twice(self, client, world) -> None:
        response = client.post(
            "/api/onboarding",
            json={"name": "Max", "email": "member@acme.test", "organizationName": "Acme"},
            headers=auth_headers(world.member),
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "User already exists"}


class TestOrganizations:
    def test_list_carries_role(self, client, world) -> None:
        response = client.get("/api/organizations", headers=auth_headers(world.member))

        assert [(o["name"], o["role"]) for o in response.json()["organizations"]] == [("Acme", "member")]

    def test_create(self, client, world) -> None:
        response = client.post("/api/organizations", json={"name": "Initech"}, headers=auth_headers(world.outsider))

        assert response.status_code == 200
        organization_id = uuid.UUID(response.json()["id"])
        assert role_in_organization(user_id=world.outsider.id, organization_id=organization_id) is OrganizationRole.admin

    def test_create_requires_name(self, client, world) -> None:
        response = client.post("/api/organizations", json={"name": ""}, headers=auth_headers(world.outsider))

        assert response.status_code == 400

    def test_update_requires_admin(self, client, world) -> None:
        path = f"/api/organizations/{world.organization.id}"

        denied = client.patch(path, json={"name": "Acme Corp"}, headers=auth_headers(world.member))
        allowed = client.patch(path, json={"name": "Acme Corp"}, headers=auth_headers(world.admin))

        assert denied.status_code == 403
        assert allowed.json()["name"] == "Acme Corp"

    def test_delete(self, client, world, blob_store) -> None:
        response = client.delete(f"/api/organizations/{world.organization.id}", headers=auth_headers(world.admin))

        assert response.json() == {"success": True}
        assert client.get("/api/organizations", headers=auth_headers(world.admin)).json()["organizations"] == []

    def test_outsider_cannot_read_members(self, client, world) -> None:
        response = client.get(f"/api/organizations/{world.organization.id}/members", headers=auth_headers(world.outsider))

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied to this organization"}


class TestMembers:
    def test_change_role(self, client, world) -> None:
        membership_id = member_id_of(client, world, world.member)

        response = client.patch(
            f"/api/organizations/{world.organization.id}/members",
            json={"membershipId": membership_id, "newRole": "admin"},
            headers=auth_headers(world.admin),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_change_role_requires_fields(self, client, world) -> None:
        response = client.patch(
            f"/api/organizations/{world.organization.id}/members",
            json={"newRole": "admin"},
            headers=auth_headers(world.admin),
        )

        assert response.status_code == 400
        assert response.json() == {"detail": "membershipId and newRole are required"}

    def test_invalid_role(self, client, world) -> None:
        response = client.patch(
            f"/api/organizations/{world.organization.id}/members",
            json={"membershipId": member_id_of(client, world, world.member), "newRole": "owner"},
            headers=auth_headers(world.admin),
        )

        assert response.status_code == 400

    def test_remove_member_drops_group_memberships(self, client, world) -> None:
        membership_id = member_id_of(client, world, world.member)

        response = client.delete(
            f"/api/organizations/{world.organization.id}/members",
            params={"membershipId": membership_id},
            headers=auth_headers(world.admin),
        )

        assert response.json() == {"success": True}
        assert is_member_of_group(user_id=world.member.id, group_id=world.group.id) is False

    def test_remove_requires_membership_id(self, client, world) -> None:
        response = client.delete(f"/api/organizations/{world.organization.id}/members", headers=auth_headers(world.admin))

        assert response.status_code == 400

    def test_unknown_membership(self, client, world) -> None:
        response = client.delete(
            f"/api/organizations/{world.organization.id}/members",
            params={"membershipId": str(uuid.uuid4())},
            headers=auth_headers(world.admin),
        )

        assert response.status_code == 404


class TestGroups:
    def test_list_across_organizations(self, client, world) -> None:
        response = client.get("/api/groups", headers=auth_headers(world.member))

        groups = response.json()["groups"]
        assert [(g["name"], g["organizationName"]) for g in groups] == [("Legal", "Acme")]

    def test_organization_groups_are_the_callers(self, client, world) -> None:
        response = client.get(f"/api/organizations/{world.organization.id}/groups", headers=auth_headers(world.admin))

        assert sorted(g["name"] for g in response.json()["groups"]) == ["Finance", "Legal"]

    def test_create_group_adds_creator(self, client, world) -> None:
        response = client.post(
            f"/api/organizations/{world.organization.id}/groups",
            json={"name": "HR", "ragInstanceId": "rag-hr"},
            headers=auth_headers(world.admin),
        )

        group_id = uuid.UUID(response.json()["id"])
        assert response.json()["ragInstanceId"] == "rag-hr"
        assert is_member_of_group(user_id=world.admin.id, group_id=group_id) is True

    def test_member_cannot_create_group(self, client, world) -> None:
        response = client.post(
            f"/api/organizations/{world.organization.id}/groups",
            json={"name": "HR"},
            headers=auth_headers(world.member),
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "Only admins can create groups"}

    def test_update_group(self, client, world) -> None:
        response = client.patch(
            f"/api/groups/{world.group.id}",
            json={"description": "Contracts and NDAs"},
            headers=auth_headers(world.admin),
        )

        assert response.json()["name"] == "Legal"
        assert response.json()["description"] == "Contracts and NDAs"

    def test_delete_group(self, client, world) -> None:
        response = client.delete(f"/api/groups/{world.other_group.id}", headers=auth_headers(world.admin))

        assert response.json() == {"success": True}
        missing = client.delete(f"/api/groups/{world.other_group.id}", headers=auth_headers(world.admin))
        assert missing.status_code == 404

    def test_group_members_visible_to_members_only(self, client, world) -> None:
        allowed = client.get(f"/api/groups/{world.group.id}/members", headers=auth_headers(world.member))
        denied = client.get(f"/api/groups/{world.other_group.id}/members", headers=auth_headers(world.member))

        assert len(allowed.json()["members"]) == 2
        assert denied.status_code == 403


class TestInvitations:
    def test_invite_and_accept(self, client, world) -> None:
        invite = client.post(f"/api/groups/{world.group.id}/invite", headers=auth_headers(world.admin))

        assert invite.status_code == 200
        assert invite.json()["inviteUrl"].startswith("http://nova.test/invite?token=")

        accepted = client.post(
            "/api/invite/accept", json={"token": invite.json()["token"]}, headers=auth_headers(world.outsider)
        )

        assert accepted.json() == {
            "success": True,
            "organization": {"id": str(world.organization.id), "name": "Acme"},
            "group": {"id": str(world.group.id), "name": "Legal"},
        }
        assert role_in_organization(user_id=world.outsider.id, organization_id=world.organization.id) is OrganizationRole.member
        assert is_member_of_group(user_id=world.outsider.id, group_id=world.group.id) is True

    def test_accept_twice(self, client, world) -> None:
        token = client.post(f"/api/groups/{world.group.id}/invite", headers=auth_headers(world.admin)).json()["token"]

        response = client.post("/api/invite/accept", json={"token": token}, headers=auth_headers(world.member))

        assert response.status_code == 400
        assert response.json() == {"detail": "You are already a member of this group"}

    def test_member_cannot_invite(self, client, world) -> None:
        response = client.post(f"/api/groups/{world.group.id}/invite", headers=auth_headers(world.member))

        assert response.status_code == 403
        assert response.json() == {"detail": "Only admins can create invitations"}

    def test_bad_tokens(self, client, world) -> None:
        missing = client.post("/api/invite/accept", json={}, headers=auth_headers(world.outsider))
        garbage = client.post("/api/invite/accept", json={"token": "garbage"}, headers=auth_headers(world.outsider))

        assert missing.json() == {"detail": "Invitation token is required"}
        assert garbage.status_code == 400
        assert garbage.json() == {"detail": "Invalid invitation token"}
