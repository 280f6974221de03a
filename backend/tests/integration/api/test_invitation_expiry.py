"""
Integration tests for invitation expiry.

WHY: Expiry is applied lazily, when an invitation is next looked at.
These tests run through the real request session (commit on success,
rollback on error) and ensure:
1. Listing invitations alone settles overdue ones as expired
2. Accepting or declining an overdue invitation fails with 400 and the
   expired state outlives the failed request's rollback
3. Organization and workspace invitations behave the same way
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utc_now
from app.models.invitation import InvitationStatus
from tests.factories import InvitationFactory, UserFactory, WorkspaceFactory


def _overdue():
    return utc_now() - timedelta(hours=1)


class TestOrganizationInvitationExpiry:
    @pytest.mark.asyncio
    async def test_listing_alone_expires_overdue(
        self, committing_client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        overdue = await InvitationFactory.create_for_organization(
            db_session,
            org_owner.organization_id,
            "late@example.com",
            invited_by=org_owner,
            expires_at=_overdue(),
        )
        invitee = await UserFactory.create(db_session, email="late@example.com")

        response = await committing_client.get(
            "/api/organizations/invitations", headers=auth_headers(invitee)
        )

        assert response.status_code == 200
        assert response.json() == []
        await db_session.refresh(overdue)
        assert overdue.status is InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    async def test_listing_keeps_current_invitations(
        self, committing_client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        current = await InvitationFactory.create_for_organization(
            db_session, org_owner.organization_id, "soon@example.com", invited_by=org_owner
        )
        invitee = await UserFactory.create(db_session, email="soon@example.com")

        response = await committing_client.get(
            "/api/organizations/invitations", headers=auth_headers(invitee)
        )

        assert [i["id"] for i in response.json()] == [current.id]
        await db_session.refresh(current)
        assert current.status is InvitationStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["accept", "decline"])
    async def test_expired_state_survives_failed_request(
        self,
        committing_client: AsyncClient,
        db_session: AsyncSession,
        org_owner,
        auth_headers,
        action,
    ):
        invitation = await InvitationFactory.create_for_organization(
            db_session,
            org_owner.organization_id,
            "late@example.com",
            invited_by=org_owner,
            expires_at=_overdue(),
        )
        invitee = await UserFactory.create(db_session, email="late@example.com")

        response = await committing_client.post(
            f"/api/organizations/invitations/{invitation.id}/{action}",
            headers=auth_headers(invitee),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invitation has expired"
        await db_session.refresh(invitation)
        assert invitation.status is InvitationStatus.EXPIRED
        await db_session.refresh(invitee)
        assert invitee.organization_id is None

    @pytest.mark.asyncio
    async def test_retry_after_expiry_reports_settled(
        self, committing_client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        invitation = await InvitationFactory.create_for_organization(
            db_session,
            org_owner.organization_id,
            "late@example.com",
            invited_by=org_owner,
            expires_at=_overdue(),
        )
        invitee = await UserFactory.create(db_session, email="late@example.com")
        url = f"/api/organizations/invitations/{invitation.id}/accept"

        first = await committing_client.post(url, headers=auth_headers(invitee))
        second = await committing_client.post(url, headers=auth_headers(invitee))

        assert first.json()["error"] == "Invitation has expired"
        assert second.status_code == 400
        assert second.json()["error"] == "Invitation is no longer pending"


class TestWorkspaceInvitationExpiry:
    @pytest.mark.asyncio
    async def test_listing_alone_expires_overdue(
        self,
        committing_client: AsyncClient,
        db_session: AsyncSession,
        org_admin,
        org_member,
        auth_headers,
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        overdue = await InvitationFactory.create_for_workspace(
            db_session, workspace, org_member, expires_at=_overdue()
        )

        response = await committing_client.get(
            "/api/workspaces/invitations", headers=auth_headers(org_member)
        )

        assert response.status_code == 200
        assert response.json() == []
        await db_session.refresh(overdue)
        assert overdue.status is InvitationStatus.EXPIRED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("action", ["accept", "decline"])
    async def test_expired_state_survives_failed_request(
        self,
        committing_client: AsyncClient,
        db_session: AsyncSession,
        org_admin,
        org_member,
        auth_headers,
        action,
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        invitation = await InvitationFactory.create_for_workspace(
            db_session, workspace, org_member, role="manager", expires_at=_overdue()
        )

        response = await committing_client.post(
            f"/api/workspaces/invitations/{invitation.id}/{action}",
            headers=auth_headers(org_member),
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invitation has expired"
        await db_session.refresh(invitation)
        assert invitation.status is InvitationStatus.EXPIRED
        await db_session.refresh(workspace)
        assert workspace.member_count == 1

    @pytest.mark.asyncio
    async def test_accept_before_expiry_joins(
        self,
        committing_client: AsyncClient,
        db_session: AsyncSession,
        org_admin,
        org_member,
        auth_headers,
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        invitation = await InvitationFactory.create_for_workspace(
            db_session, workspace, org_member, expires_at=utc_now() + timedelta(minutes=5)
        )

        response = await committing_client.post(
            f"/api/workspaces/invitations/{invitation.id}/accept",
            headers=auth_headers(org_member),
        )

        assert response.status_code == 200
        await db_session.refresh(invitation)
        assert invitation.status is InvitationStatus.ACCEPTED
        await db_session.refresh(workspace)
        assert workspace.member_count == 2
