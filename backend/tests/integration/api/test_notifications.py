"""
Integration tests for the notification inbox.

WHY: Access changes reach the affected users through notifications.
These tests ensure:
1. Joining an organization notifies its owner exactly once
2. Each user only reads, marks and deletes their own notifications
3. Marking everything read is idempotent
4. Muted types are never stored
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import NotificationType
from app.services.notification_service import NotificationService
from tests.factories import UserFactory


async def _notify(db_session: AsyncSession, user, notification_type=NotificationType.SYSTEM_ANNOUNCEMENT):
    notification = await NotificationService(db_session).notify(
        user.id, notification_type, title="Heads up", message="Something changed"
    )
    await db_session.commit()
    return notification


async def _invite_and_accept(client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers):
    invite = await client.post(
        "/api/organizations/invite",
        json={"email": "v@example.com", "role": "member"},
        headers=auth_headers(org_owner),
    )
    assert invite.status_code == 201
    invitee = await UserFactory.create(db_session, email="v@example.com")
    accepted = await client.post(
        f"/api/organizations/invitations/{invite.json()['id']}/accept",
        headers=auth_headers(invitee),
    )
    assert accepted.status_code == 200
    return invitee


class TestMemberJoined:
    @pytest.mark.asyncio
    async def test_accept_notifies_owner_once(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        """The owner also sent the invitation, and still hears about it once."""
        invitee = await _invite_and_accept(client, db_session, org_owner, auth_headers)

        response = await client.get("/api/notifications", headers=auth_headers(org_owner))

        assert response.status_code == 200
        data = response.json()
        assert data["unread_count"] == 1
        [notification] = data["notifications"]
        assert notification["type"] == "member_joined"
        assert notification["triggered_by_id"] == invitee.id
        assert notification["is_read"] is False

        own = await client.get("/api/notifications", headers=auth_headers(invitee))
        assert own.json()["notifications"] == []

    @pytest.mark.asyncio
    async def test_muted_type_is_not_stored(
        self, client: AsyncClient, db_session: AsyncSession, org_owner, auth_headers
    ):
        muted = await client.put(
            "/api/notifications/preferences",
            json={"muted_types": ["member_joined"]},
            headers=auth_headers(org_owner),
        )
        assert muted.status_code == 200
        assert muted.json()["muted_types"] == ["member_joined"]
        assert muted.json()["is_enabled"] is True

        await _invite_and_accept(client, db_session, org_owner, auth_headers)

        count = await client.get("/api/notifications/unread-count", headers=auth_headers(org_owner))
        assert count.json() == {"unread_count": 0}


class TestInbox:
    @pytest.mark.asyncio
    async def test_list_filters(self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers):
        await _notify(db_session, org_member, NotificationType.TASK_ASSIGNED)
        read = await _notify(db_session, org_member, NotificationType.FILE_SHARED)
        await client.patch(f"/api/notifications/{read.id}/read", headers=auth_headers(org_member))

        unread = await client.get(
            "/api/notifications", params={"unread_only": True}, headers=auth_headers(org_member)
        )
        shared = await client.get(
            "/api/notifications", params={"type": "file_shared"}, headers=auth_headers(org_member)
        )
        capped = await client.get(
            "/api/notifications", params={"limit": 500}, headers=auth_headers(org_member)
        )

        assert [n["type"] for n in unread.json()["notifications"]] == ["task_assigned"]
        assert [n["id"] for n in shared.json()["notifications"]] == [read.id]
        assert capped.json()["pagination"] == {"limit": 100, "has_more": False}

    @pytest.mark.asyncio
    async def test_mark_read_keeps_first_read_at(
        self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers
    ):
        notification = await _notify(db_session, org_member)
        url = f"/api/notifications/{notification.id}/read"

        first = await client.patch(url, headers=auth_headers(org_member))
        second = await client.patch(url, headers=auth_headers(org_member))

        assert first.status_code == 200
        assert first.json()["is_read"] is True
        assert first.json()["read_at"] is not None
        assert second.json()["read_at"] == first.json()["read_at"]

    @pytest.mark.asyncio
    async def test_other_users_notification_is_forbidden(
        self, client: AsyncClient, db_session: AsyncSession, org_member, org_admin, auth_headers
    ):
        notification = await _notify(db_session, org_member)

        read = await client.patch(
            f"/api/notifications/{notification.id}/read", headers=auth_headers(org_admin)
        )
        deleted = await client.delete(
            f"/api/notifications/{notification.id}", headers=auth_headers(org_admin)
        )

        assert read.status_code == 403
        assert deleted.status_code == 403
        count = await client.get("/api/notifications/unread-count", headers=auth_headers(org_member))
        assert count.json()["unread_count"] == 1

    @pytest.mark.asyncio
    async def test_missing_notification_is_404(self, client: AsyncClient, org_member, auth_headers):
        response = await client.patch("/api/notifications/999/read", headers=auth_headers(org_member))

        assert response.status_code == 404
        assert response.json()["error"] == "Notification not found"

    @pytest.mark.asyncio
    async def test_mark_all_read_twice(
        self, client: AsyncClient, db_session: AsyncSession, org_member, org_admin, auth_headers
    ):
        await _notify(db_session, org_member)
        await _notify(db_session, org_member)
        await _notify(db_session, org_admin)

        first = await client.patch("/api/notifications/mark-all-read", headers=auth_headers(org_member))
        second = await client.patch("/api/notifications/mark-all-read", headers=auth_headers(org_member))

        assert first.status_code == 200
        assert first.json() == {"message": "2 notifications marked as read", "marked_count": 2}
        assert second.json()["marked_count"] == 0
        others = await client.get("/api/notifications/unread-count", headers=auth_headers(org_admin))
        assert others.json()["unread_count"] == 1

    @pytest.mark.asyncio
    async def test_delete_own_notification(
        self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers
    ):
        notification = await _notify(db_session, org_member)

        response = await client.delete(
            f"/api/notifications/{notification.id}", headers=auth_headers(org_member)
        )

        assert response.status_code == 204
        listing = await client.get("/api/notifications", headers=auth_headers(org_member))
        assert listing.json()["notifications"] == []

    @pytest.mark.asyncio
    async def test_types_lists_every_type(self, client: AsyncClient, org_member, auth_headers):
        response = await client.get("/api/notifications/types", headers=auth_headers(org_member))

        assert response.status_code == 200
        assert set(response.json()["types"]) == {t.value for t in NotificationType}
        assert "urgent" in response.json()["priorities"]

    @pytest.mark.asyncio
    async def test_preferences_default_then_merge(
        self, client: AsyncClient, org_member, auth_headers
    ):
        defaults = await client.get("/api/notifications/preferences", headers=auth_headers(org_member))
        assert defaults.json()["is_enabled"] is True
        assert defaults.json()["muted_types"] == []

        await client.put(
            "/api/notifications/preferences",
            json={"email_notifications": False},
            headers=auth_headers(org_member),
        )
        merged = await client.put(
            "/api/notifications/preferences",
            json={"muted_types": ["task_assigned"]},
            headers=auth_headers(org_member),
        )

        assert merged.json()["email_notifications"] is False
        assert merged.json()["muted_types"] == ["task_assigned"]


class TestSendNotification:
    @pytest.mark.asyncio
    async def test_requires_manage_users(self, client: AsyncClient, org_owner, org_member, auth_headers):
        response = await client.post(
            "/api/notifications",
            json={"user_id": org_member.id, "type": "system_announcement", "title": "Hi", "message": "Hello"},
            headers=auth_headers(org_owner),
        )

        assert response.status_code == 403
        assert response.json()["required"] == "manage_users"

    @pytest.mark.asyncio
    async def test_super_admin_sends(
        self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers
    ):
        root = await UserFactory.create(db_session, email="root@example.com", role="super_admin")

        response = await client.post(
            "/api/notifications",
            json={
                "user_id": org_member.id,
                "type": "system_announcement",
                "title": "Maintenance",
                "message": "Restart at 22:00",
                "priority": "high",
            },
            headers=auth_headers(root),
        )

        assert response.status_code == 201
        assert response.json()["message"] == "Notification created"
        listing = await client.get("/api/notifications", headers=auth_headers(org_member))
        [notification] = listing.json()["notifications"]
        assert notification["id"] == response.json()["notification_id"]
        assert notification["priority"] == "high"
        assert notification["triggered_by_id"] == root.id

    @pytest.mark.asyncio
    async def test_muted_recipient_is_400(
        self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers
    ):
        root = await UserFactory.create(db_session, email="root@example.com", role="super_admin")
        await client.put(
            "/api/notifications/preferences",
            json={"is_enabled": False},
            headers=auth_headers(org_member),
        )

        response = await client.post(
            "/api/notifications",
            json={"user_id": org_member.id, "type": "security_alert", "title": "Hi", "message": "Hello"},
            headers=auth_headers(root),
        )

        assert response.status_code == 400
