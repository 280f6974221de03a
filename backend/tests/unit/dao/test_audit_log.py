"""
Audit Log DAO Tests.

WHAT: Unit tests for the AuditLog model and DAO.

WHY: The audit trail is append-only. These tests ensure:
- Entries persist actor, target, scope and before/after values
- Listing is scoped to one organization, newest first
- Updates and deletes are refused
"""

import pytest

from app.core.exceptions import AuditLogImmutableError
from app.dao.audit_log import AuditLogDAO
from app.models.audit_log import AuditAction
from tests.factories import OrganizationFactory, UserFactory


@pytest.mark.asyncio
class TestAuditLogDAO:
    async def test_create_persists_all_fields(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        org = await OrganizationFactory.create(db_session, owner=owner)
        target = await UserFactory.create(
            db_session, email="target@example.com", organization_id=org.id
        )
        dao = AuditLogDAO(db_session)

        log = await dao.create(
            action=AuditAction.ROLE_CHANGE,
            resource_type="user",
            actor_user_id=owner.id,
            target_user_id=target.id,
            resource_id=target.id,
            org_id=org.id,
            changes={"organization_role": {"before": "member", "after": "manager"}},
            reason="Team lead",
            ip_address="2001:db8::1",
        )

        fetched = await dao.get_by_id(log.id)
        assert fetched is not None
        assert fetched.action is AuditAction.ROLE_CHANGE
        assert fetched.changes["organization_role"]["after"] == "manager"
        assert fetched.reason == "Team lead"
        assert fetched.ip_address == "2001:db8::1"
        assert fetched.created_at is not None

    async def test_get_by_org_is_scoped_and_paginated(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        org = await OrganizationFactory.create(db_session, owner=owner)
        other = await UserFactory.create(db_session, email="other@example.com")
        other_org = await OrganizationFactory.create(db_session, owner=other, name="Other")
        dao = AuditLogDAO(db_session)

        created = []
        for _ in range(3):
            created.append(
                await dao.create(
                    action=AuditAction.INVITATION_SENT,
                    resource_type="invitation",
                    actor_user_id=owner.id,
                    org_id=org.id,
                )
            )
        await dao.create(
            action=AuditAction.ORG_CREATED,
            resource_type="organization",
            actor_user_id=other.id,
            org_id=other_org.id,
        )

        page = await dao.get_by_org(org.id, skip=0, limit=2)
        rest = await dao.get_by_org(org.id, skip=2, limit=2)

        assert [e.id for e in page] == [created[2].id, created[1].id]
        assert [e.id for e in rest] == [created[0].id]
        assert await dao.count_by_org(org.id) == 3
        assert await dao.count_by_org(other_org.id) == 1

    async def test_get_by_target_user(self, db_session):
        owner = await UserFactory.create(db_session, email="owner@example.com")
        target = await UserFactory.create(db_session, email="target@example.com")
        dao = AuditLogDAO(db_session)
        await dao.create(
            action=AuditAction.STATUS_CHANGE,
            resource_type="user",
            actor_user_id=owner.id,
            target_user_id=target.id,
        )

        entries = await dao.get_by_target_user(target.id)

        assert len(entries) == 1
        assert entries[0].actor_user_id == owner.id

    async def test_update_is_refused(self, db_session):
        with pytest.raises(AuditLogImmutableError):
            await AuditLogDAO(db_session).update(1, reason="rewritten")

    async def test_delete_is_refused(self, db_session):
        with pytest.raises(AuditLogImmutableError) as exc_info:
            await AuditLogDAO(db_session).delete(1)
        assert exc_info.value.status_code == 403
