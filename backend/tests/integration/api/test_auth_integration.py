"""
Integration tests for authentication, system roles and workspace content.

WHY: These tests exercise the full request path:
1. Registration and login issue tokens that carry no role data
2. System-level routes are decided by the system role only
3. Task and file routes combine workspace permissions with ownership
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import create_access_token
from tests.factories import ContentFactory, UserFactory, WorkspaceFactory


class TestAuthenticationFlow:
    @pytest.mark.asyncio
    async def test_register_login_me(self, client: AsyncClient):
        register = await client.post(
            "/api/auth/register",
            json={
                "email": "Jane@Example.com",
                "password": "SecurePassword123!",
                "display_name": "Jane Doe",
            },
        )
        assert register.status_code == 201
        assert register.json()["token_type"] == "bearer"

        login = await client.post(
            "/api/auth/login",
            json={"email": "jane@example.com", "password": "SecurePassword123!"},
        )
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        data = me.json()
        assert data["email"] == "jane@example.com"
        assert data["role"] == "member"
        assert data["organization_id"] is None

    @pytest.mark.asyncio
    async def test_duplicate_registration_conflicts(
        self, client: AsyncClient, db_session: AsyncSession
    ):
        await UserFactory.create(db_session, email="jane@example.com")

        response = await client.post(
            "/api/auth/register",
            json={"email": "jane@example.com", "password": "SecurePassword123!", "display_name": "J"},
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_wrong_password_is_generic(self, client: AsyncClient, db_session: AsyncSession):
        await UserFactory.create(db_session, email="jane@example.com")

        response = await client.post(
            "/api/auth/login", json={"email": "jane@example.com", "password": "nope"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_missing_and_bad_tokens(self, client: AsyncClient, db_session: AsyncSession):
        user = await UserFactory.create(db_session, email="jane@example.com")
        expired = create_access_token({"user_id": user.id}, expires_delta=timedelta(seconds=-5))

        missing = await client.get("/api/auth/me")
        garbage = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        stale = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})

        assert missing.status_code == 401
        assert garbage.status_code == 401
        assert stale.status_code == 401
        assert stale.json()["error"] == "Token has expired"


class TestSystemRoles:
    @pytest.mark.asyncio
    async def test_member_cannot_list_all_users(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        user = await UserFactory.create(db_session, email="jane@example.com")

        response = await client.get("/api/auth/users", headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["required"] == "view_users"
        assert response.json()["userRole"] == "member"

    @pytest.mark.asyncio
    async def test_super_admin_lists_all_users(
        self, client: AsyncClient, db_session: AsyncSession, org_member, auth_headers
    ):
        root = await UserFactory.create(db_session, email="root@example.com", role="super_admin")

        response = await client.get("/api/auth/users", headers=auth_headers(root))

        assert response.status_code == 200
        assert response.json()["total"] == 3

    @pytest.mark.asyncio
    async def test_super_admin_changes_system_role(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        root = await UserFactory.create(db_session, email="root@example.com", role="super_admin")
        user = await UserFactory.create(db_session, email="jane@example.com")

        response = await client.put(
            f"/api/auth/users/{user.id}/role",
            json={"role": "Manager"},
            headers=auth_headers(root),
        )

        assert response.status_code == 200
        assert response.json()["role"] == "manager"

    @pytest.mark.asyncio
    async def test_super_admin_cannot_be_granted(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        root = await UserFactory.create(db_session, email="root@example.com", role="super_admin")
        user = await UserFactory.create(db_session, email="jane@example.com")

        response = await client.put(
            f"/api/auth/users/{user.id}/role",
            json={"role": "super_admin"},
            headers=auth_headers(root),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "RoleAssignmentError"

    @pytest.mark.asyncio
    async def test_manager_cannot_change_system_roles(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        manager = await UserFactory.create(db_session, email="m@example.com", role="manager")
        user = await UserFactory.create(db_session, email="jane@example.com")

        response = await client.put(
            f"/api/auth/users/{user.id}/role",
            json={"role": "org_admin"},
            headers=auth_headers(manager),
        )

        assert response.status_code == 403
        assert response.json()["required"] == "manage_users"

    @pytest.mark.asyncio
    async def test_role_change_applies_on_next_request(
        self, client: AsyncClient, db_session: AsyncSession, auth_headers
    ):
        """The token stays the same; the gate re-reads the stored role."""
        user = await UserFactory.create(db_session, email="jane@example.com")
        headers = auth_headers(user)
        assert (await client.get("/api/auth/users", headers=headers)).status_code == 403

        user.role = "super_admin"
        await db_session.commit()

        assert (await client.get("/api/auth/users", headers=headers)).status_code == 200


class TestTasks:
    @pytest.mark.asyncio
    async def test_member_creates_own_task(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member)

        response = await client.post(
            f"/api/workspaces/{workspace.id}/tasks",
            json={"title": "Draft copy", "assigned_to_id": org_member.id},
            headers=auth_headers(org_member),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["created_by_id"] == org_member.id
        assert data["status"] == "todo"
        assert data["priority"] == "medium"

        listing = await client.get(
            f"/api/workspaces/{workspace.id}/tasks", headers=auth_headers(org_member)
        )
        assert [t["title"] for t in listing.json()] == ["Draft copy"]

    @pytest.mark.asyncio
    async def test_member_cannot_assign_to_others(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member)

        response = await client.post(
            f"/api/workspaces/{workspace.id}/tasks",
            json={"title": "Review", "assigned_to_id": org_admin.id},
            headers=auth_headers(org_member),
        )

        assert response.status_code == 403
        assert response.json()["required"] == "assign_tasks"

    @pytest.mark.asyncio
    async def test_assignee_must_be_in_workspace(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)

        response = await client.post(
            f"/api/workspaces/{workspace.id}/tasks",
            json={"title": "Review", "assigned_to_id": org_member.id},
            headers=auth_headers(org_admin),
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_viewer_cannot_create(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member, role="viewer")

        response = await client.post(
            f"/api/workspaces/{workspace.id}/tasks",
            json={"title": "Nope"},
            headers=auth_headers(org_member),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_delete_by_owner_or_manager(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member)
        own = await ContentFactory.create_task(db_session, workspace, org_member, title="Mine")
        other = await ContentFactory.create_task(db_session, workspace, org_admin, title="Theirs")
        manager = await UserFactory.create(db_session, email="m@example.com", role="manager")

        denied = await client.delete(f"/api/tasks/{other.id}", headers=auth_headers(org_member))
        mine = await client.delete(f"/api/tasks/{own.id}", headers=auth_headers(org_member))
        by_manager = await client.delete(f"/api/tasks/{other.id}", headers=auth_headers(manager))
        missing = await client.delete(f"/api/tasks/{other.id}", headers=auth_headers(manager))

        assert denied.status_code == 403
        assert denied.json()["required"] == "manager"
        assert mine.status_code == 204
        assert by_manager.status_code == 204
        assert missing.status_code == 404
        assert missing.json()["error"] == "Task not found"


class TestFiles:
    @pytest.mark.asyncio
    async def test_upload_and_delete(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member)

        created = await client.post(
            f"/api/workspaces/{workspace.id}/files",
            json={
                "file_name": "brief.docx",
                "content_type": "application/msword",
                "size_bytes": 2048,
                "storage_path": f"workspaces/{workspace.id}/brief.docx",
            },
            headers=auth_headers(org_member),
        )
        assert created.status_code == 201
        file_id = created.json()["id"]
        assert created.json()["uploaded_by_id"] == org_member.id

        listing = await client.get(
            f"/api/workspaces/{workspace.id}/files", headers=auth_headers(org_admin)
        )
        assert [f["id"] for f in listing.json()] == [file_id]

        deleted = await client.delete(f"/api/files/{file_id}", headers=auth_headers(org_member))
        assert deleted.status_code == 204

    @pytest.mark.asyncio
    async def test_viewer_cannot_upload(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        await WorkspaceFactory.add_member(db_session, workspace, org_member, role="viewer")

        response = await client.post(
            f"/api/workspaces/{workspace.id}/files",
            json={"file_name": "x.txt", "storage_path": "x.txt"},
            headers=auth_headers(org_member),
        )

        assert response.status_code == 403
        assert response.json()["required"] == "upload_files"

    @pytest.mark.asyncio
    async def test_non_uploader_member_cannot_delete(
        self, client: AsyncClient, db_session: AsyncSession, org_admin, org_member, auth_headers
    ):
        workspace = await WorkspaceFactory.create(db_session, owner=org_admin)
        record = await ContentFactory.create_file(db_session, workspace, org_admin)

        response = await client.delete(f"/api/files/{record.id}", headers=auth_headers(org_member))

        assert response.status_code == 403
