"""
Integration tests for organization management API.

WHY: Organizations are the tenant boundary. These tests ensure:
1. Callers without an organization are refused by organization routes
2. Creating an organization makes the caller its owner
3. The invitation flow grants the proposed role exactly once
4. Nobody can invite into a role at or above their own
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.roles import Role
from app.dao.invitation import OrganizationInvitationDAO
from app.models.base import utc_now
from app.models.invitation import InvitationStatus
from tests.factories import InvitationFactory, UserFactory


class TestOrganizationLifecycle:
    """Creating and reading the caller's organization."""

    @pytest.mark.asyncio
    async def test_create_organization_makes_caller_owner(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        user = await UserFactory.create(db_session, email="founder@example.com")

        response = await client.post(
            "/api/organizations",
            json={"name": "  Globex  ", "description": "Widgets"},
            headers=auth_headers(user),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["organization"]["name"] == "Globex"
        assert data["organization"]["owner_id"] == user.id
        assert data["organization"]["member_count"] == 1
        assert data["organization"]["settings"] == {
            "allow_public_workspaces": False,
            "require_approval_for_new_members": True,
        }
        assert data["user"]["organization_role"] == "org_owner"

        current = await client.get("/api/organizations/current", headers=auth_headers(user))
        assert current.status_code == 200
        assert current.json()["user_role"] == "org_owner"

    @pytest.mark.asyncio
    async def test_cannot_create_second_organization(
        self, client: AsyncClient, org_owner, auth_headers
    ):
        response = await client.post(
            "/api/organizations", json={"name": "Second"}, headers=auth_headers(org_owner)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "User already belongs to an organization"

    @pytest.mark.asyncio
    async def test_current_without_organization_is_404(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        user = await UserFactory.create(db_session, email="loner@example.com")

        response = await client.get("/api/organizations/current", headers=auth_headers(user))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        response = await client.get("/api/organizations/members")

        assert response.status_code == 401


class TestOrganizationMembership:
    @pytest.mark.asyncio
    async def test_unaffiliated_user_is_refused(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        """A user without an organization gets 403 before any role check."""
        user = await UserFactory.create(db_session, email="u@example.com")

        response = await client.get("/api/organizations/members", headers=auth_headers(user))

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "Access denied: No organization membership"
        assert body["code"] == "NoOrganizationMembershipError"

    @pytest.mark.asyncio
    async def test_admin_lists_members(
        self, client: AsyncClient, org_owner, org_admin, org_member, auth_headers
    ):
        response = await client.get("/api/organizations/members", headers=auth_headers(org_admin))

        assert response.status_code == 200
        emails = [u["email"] for u in response.json()]
        assert emails == ["owner@example.com", "admin@example.com", "member@example.com"]

    @pytest.mark.asyncio
    async def test_member_cannot_list_members(
        self, client: AsyncClient, org_member, auth_headers
    ):
        response = await client.get("/api/organizations/members", headers=auth_headers(org_member))

        assert response.status_code == 403
        body = response.json()
        assert body["required"] == "view_org_members"
        assert body["userRole"] == "member"

    @pytest.mark.asyncio
    async def test_admin_promotes_member(
        self, client: AsyncClient, org_admin, org_member, auth_headers
    ):
        response = await client.put(
            f"/api/organizations/members/{org_member.id}/role",
            json={"role": "MANAGER", "reason": "Leads the design team"},
            headers=auth_headers(org_admin),
        )

        assert response.status_code == 200
        assert response.json()["organization_role"] == "manager"

    @pytest.mark.asyncio
    async def test_unknown_role_is_rejected(
        self, client: AsyncClient, org_admin, org_member, auth_headers
    ):
        response = await client.put(
            f"/api/organizations/members/{org_member.id}/role",
            json={"role": "overlord"},
            headers=auth_headers(org_admin),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Valid role is required"

    @pytest.mark.asyncio
    async def test_owner_role_cannot_be_changed_by_admin(
        self, client: AsyncClient, org_owner, org_admin, auth_headers
    ):
        response = await client.put(
            f"/api/organizations/members/{org_owner.id}/role",
            json={"role": "member"},
            headers=auth_headers(org_admin),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "Cannot change organization owner role"


class TestOrganizationInvitations:
    @pytest.mark.asyncio
    async def test_invite_and_accept_grants_role_once(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        """Owner invites V as manager; V accepts once and joins as manager."""
        invite = await client.post(
            "/api/organizations/invite",
            json={"email": "V@Example.com", "role": "manager"},
            headers=auth_headers(org_owner),
        )
        assert invite.status_code == 201
        invitation = invite.json()
        assert invitation["email"] == "v@example.com"
        assert invitation["status"] == "pending"

        invitee = await UserFactory.create(db_session, email="v@example.com")
        pending = await client.get("/api/organizations/invitations", headers=auth_headers(invitee))
        assert [i["id"] for i in pending.json()] == [invitation["id"]]

        accepted = await client.post(
            f"/api/organizations/invitations/{invitation['id']}/accept",
            headers=auth_headers(invitee),
        )
        assert accepted.status_code == 200
        data = accepted.json()
        assert data["role"] == "manager"
        assert data["organization"]["member_count"] == 2

        again = await client.post(
            f"/api/organizations/invitations/{invitation['id']}/accept",
            headers=auth_headers(invitee),
        )
        assert again.status_code == 400
        assert again.json()["error"] == "Invitation is no longer pending"

        me = await client.get("/api/auth/me", headers=auth_headers(invitee))
        assert me.json()["organization_id"] == org_owner.organization_id
        assert me.json()["organization_role"] == "manager"

        joined = await client.get(
            "/api/admin/audit-logs",
            params={"action": "MEMBER_JOINED"},
            headers=auth_headers(org_owner),
        )
        assert joined.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_duplicate_pending_invitation_conflicts(
        self, client: AsyncClient, org_owner, auth_headers
    ):
        payload = {"email": "sam@example.com", "role": "member"}
        first = await client.post(
            "/api/organizations/invite", json=payload, headers=auth_headers(org_owner)
        )
        second = await client.post(
            "/api/organizations/invite", json=payload, headers=auth_headers(org_owner)
        )

        assert first.status_code == 201
        assert second.status_code == 409

    @pytest.mark.asyncio
    async def test_cannot_invite_existing_member(
        self, client: AsyncClient, org_owner, org_member, auth_headers
    ):
        response = await client.post(
            "/api/organizations/invite",
            json={"email": org_member.email, "role": "member"},
            headers=auth_headers(org_owner),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_cannot_invite_at_own_level(
        self, client: AsyncClient, org_admin, auth_headers
    ):
        response = await client.post(
            "/api/organizations/invite",
            json={"email": "sam@example.com", "role": "org_admin"},
            headers=auth_headers(org_admin),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "RoleAssignmentError"
        assert body["required"] == "org_admin"
        assert body["userRole"] == "org_admin"

    @pytest.mark.asyncio
    async def test_manager_cannot_grant_org_admin(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers, policy
    ):
        manager = await UserFactory.create(
            db_session,
            email="manager@example.com",
            organization_id=org_owner.organization_id,
            organization_role="manager",
        )

        response = await client.post(
            "/api/organizations/invite",
            json={"email": "sam@example.com", "role": "org_admin"},
            headers=auth_headers(manager),
        )

        assert response.status_code == 403
        assert not policy.can_assign_role(Role.MANAGER, Role.ORG_ADMIN)

    @pytest.mark.asyncio
    async def test_accepting_someone_elses_invitation_is_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        invitation = await InvitationFactory.create_for_organization(
            db_session, org_owner.organization_id, "v@example.com", invited_by=org_owner
        )
        intruder = await UserFactory.create(db_session, email="intruder@example.com")

        response = await client.post(
            f"/api/organizations/invitations/{invitation.id}/accept",
            headers=auth_headers(intruder),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_expired_invitation_is_settled_on_accept(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        invitation = await InvitationFactory.create_for_organization(
            db_session,
            org_owner.organization_id,
            "late@example.com",
            invited_by=org_owner,
            expires_at=utc_now() - timedelta(hours=1),
        )
        invitee = await UserFactory.create(db_session, email="late@example.com")

        response = await client.post(
            f"/api/organizations/invitations/{invitation.id}/accept",
            headers=auth_headers(invitee),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invitation has expired"
        stored = await OrganizationInvitationDAO(db_session).get_by_id(invitation.id)
        assert stored.status is InvitationStatus.EXPIRED

        pending = await client.get("/api/organizations/invitations", headers=auth_headers(invitee))
        assert pending.json() == []

    @pytest.mark.asyncio
    async def test_decline_invitation(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        invitation = await InvitationFactory.create_for_organization(
            db_session, org_owner.organization_id, "v@example.com", invited_by=org_owner
        )
        invitee = await UserFactory.create(db_session, email="v@example.com")

        response = await client.post(
            f"/api/organizations/invitations/{invitation.id}/decline",
            headers=auth_headers(invitee),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "declined"
        me = await client.get("/api/auth/me", headers=auth_headers(invitee))
        assert me.json()["organization_id"] is None

    @pytest.mark.asyncio
    async def test_available_roles_for_owner(
        self, client: AsyncClient, org_owner, auth_headers
    ):
        response = await client.get(
            "/api/organizations/available-roles", headers=auth_headers(org_owner)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["current_role"] == "org_owner"
        assert [r["value"] for r in data["roles"]] == [
            "org_admin",
            "workspace_admin",
            "manager",
            "member",
            "viewer",
        ]
        assert data["roles"][0]["label"] == "Organization Admin"
