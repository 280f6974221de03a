"""
Identity Resolver Tests.

WHY: Every gate decision starts from a role read out of the database.
Missing and malformed records must resolve to safe defaults instead of
raising or granting more than intended.
"""

import logging

import pytest

from app.core.roles import Role
from app.services.identity import IdentityResolver, normalize_stored_role
from tests.factories import OrganizationFactory, UserFactory, WorkspaceFactory


class TestNormalizeStoredRole:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_values_use_default(self, value):
        assert normalize_stored_role(value) is Role.MEMBER
        assert normalize_stored_role(value, default=Role.VIEWER) is Role.VIEWER

    def test_casing_and_whitespace_are_normalized(self):
        assert normalize_stored_role(" ORG_ADMIN ") is Role.ORG_ADMIN

    def test_unrecognized_value_degrades_to_viewer(self, caplog):
        with caplog.at_level(logging.WARNING, logger="app.services.identity"):
            assert normalize_stored_role("owner") is Role.VIEWER
        assert "owner" in caplog.text


@pytest.mark.asyncio
class TestIdentityResolver:
    async def test_missing_user_resolves_to_member(self, db_session):
        resolver = IdentityResolver(db_session)

        assert await resolver.get_user_system_role(9999) is Role.MEMBER
        assert await resolver.get_user_organization_role(9999) is Role.MEMBER
        assert await resolver.get_user_organization_id(9999) is None

    async def test_system_role_is_read_from_record(self, db_session):
        user = await UserFactory.create(db_session, role="manager")

        assert await IdentityResolver(db_session).get_user_system_role(user.id) is Role.MANAGER

    async def test_organization_role_falls_back_to_system_role(self, db_session):
        user = await UserFactory.create(db_session, role="manager", organization_role=None)

        assert await IdentityResolver(db_session).get_user_organization_role(user.id) is Role.MANAGER

    async def test_unknown_stored_organization_role_is_viewer(self, db_session):
        user = await UserFactory.create(db_session, organization_role="chief")

        assert await IdentityResolver(db_session).get_user_organization_role(user.id) is Role.VIEWER

    async def test_role_change_is_visible_immediately(self, db_session):
        user = await UserFactory.create(db_session, organization_role="member")
        resolver = IdentityResolver(db_session)
        assert await resolver.get_user_organization_role(user.id) is Role.MEMBER

        user.organization_role = "manager"
        await db_session.commit()

        assert await resolver.get_user_organization_role(user.id) is Role.MANAGER

    async def test_workspace_roles(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        await OrganizationFactory.create(db_session, owner=owner)
        member = await UserFactory.create(
            db_session, email="member@example.com", organization_id=owner.organization_id
        )
        outsider = await UserFactory.create(
            db_session, email="outsider@example.com", organization_id=owner.organization_id
        )
        workspace = await WorkspaceFactory.create(db_session, owner=owner)
        await WorkspaceFactory.add_member(db_session, workspace, member, role="manager")
        resolver = IdentityResolver(db_session)

        assert await resolver.get_user_workspace_role(owner.id, workspace.id) is Role.WORKSPACE_ADMIN
        assert await resolver.get_user_workspace_role(member.id, workspace.id) is Role.MANAGER
        assert await resolver.get_user_workspace_role(outsider.id, workspace.id) is None
        assert await resolver.get_user_workspace_role(owner.id, 9999) is None

    async def test_same_organization_requires_both_memberships(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        await OrganizationFactory.create(db_session, owner=owner)
        colleague = await UserFactory.create(
            db_session, email="colleague@example.com", organization_id=owner.organization_id
        )
        loner = await UserFactory.create(db_session, email="loner@example.com")
        other_loner = await UserFactory.create(db_session, email="loner2@example.com")
        resolver = IdentityResolver(db_session)

        assert await resolver.are_in_same_organization(owner.id, colleague.id)
        assert not await resolver.are_in_same_organization(owner.id, loner.id)
        assert not await resolver.are_in_same_organization(loner.id, other_loner.id)

    async def test_can_manage_user_requires_strictly_higher_level(self, db_session, policy):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        await OrganizationFactory.create(db_session, owner=owner)
        org_id = owner.organization_id
        admin = await UserFactory.create(
            db_session, email="admin@example.com", organization_id=org_id, organization_role="org_admin"
        )
        peer = await UserFactory.create(
            db_session, email="peer@example.com", organization_id=org_id, organization_role="org_admin"
        )
        member = await UserFactory.create(
            db_session, email="member@example.com", organization_id=org_id, organization_role="member"
        )
        stranger = await UserFactory.create(db_session, email="stranger@example.com")
        resolver = IdentityResolver(db_session)

        assert await resolver.can_manage_user(admin.id, member.id, policy)
        assert await resolver.can_manage_user(owner.id, admin.id, policy)
        assert not await resolver.can_manage_user(admin.id, peer.id, policy)
        assert not await resolver.can_manage_user(admin.id, owner.id, policy)
        assert not await resolver.can_manage_user(admin.id, admin.id, policy)
        assert not await resolver.can_manage_user(owner.id, stranger.id, policy)

    async def test_get_organization_users(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        await OrganizationFactory.create(db_session, owner=owner)
        await UserFactory.create(
            db_session, email="member@example.com", organization_id=owner.organization_id
        )
        loner = await UserFactory.create(db_session, email="loner@example.com")
        resolver = IdentityResolver(db_session)

        users = await resolver.get_organization_users(owner.id)

        assert {u.email for u in users} == {"owner@example.com", "member@example.com"}
        assert await resolver.get_organization_users(loner.id) == []
