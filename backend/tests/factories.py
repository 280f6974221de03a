"""
Test factories for creating test data.

WHY: Factories provide a consistent, reusable way to create test objects,
reducing duplication and making tests more maintainable. Using factories
instead of manual object creation ensures tests stay consistent when models change.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import hash_password
from app.core.roles import Role
from app.models.base import utc_now
from app.models.file import FileRecord
from app.models.invitation import (
    InvitationStatus,
    OrganizationInvitation,
    WorkspaceInvitation,
)
from app.models.organization import DEFAULT_ORGANIZATION_SETTINGS, Organization
from app.models.task import Task
from app.models.user import User
from app.models.workspace import Workspace, WorkspaceMember


DEFAULT_PASSWORD = "TestPassword123!"


class UserFactory:
    """
    Factory for creating User test instances.

    WHY: Tests need users at every tier (system role, organization role)
    to exercise the gates.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        email: str = "test@example.com",
        password: str = DEFAULT_PASSWORD,
        display_name: str = "Test User",
        role: str = Role.MEMBER.value,
        organization_id: Optional[int] = None,
        organization_role: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        """
        Create a user for testing.

        Args:
            session: Database session
            email: User email (must be unique)
            password: Plain text password (will be hashed)
            display_name: Display name
            role: Stored system role string
            organization_id: Organization the user belongs to
            organization_role: Stored organization role string
            is_active: Whether user is active

        Returns:
            Created User instance
        """
        user = User(
            email=email,
            hashed_password=hash_password(password),
            display_name=display_name,
            role=role,
            organization_id=organization_id,
            organization_role=organization_role,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


class OrganizationFactory:
    """
    Factory for creating Organization test instances.

    The owner is attached the way the create endpoint does it: the
    owner's organization fields are filled in and the role is org_owner.
    """

    @staticmethod
    async def create(
        session: AsyncSession,
        owner: User,
        name: str = "Test Organization",
        description: Optional[str] = None,
        member_count: int = 1,
    ) -> Organization:
        org = Organization(
            name=name,
            description=description or f"Description for {name}",
            owner_id=owner.id,
            settings=dict(DEFAULT_ORGANIZATION_SETTINGS),
            member_count=member_count,
        )
        session.add(org)
        await session.flush()

        owner.organization_id = org.id
        owner.organization_role = Role.ORG_OWNER.value
        await session.commit()
        await session.refresh(org)
        await session.refresh(owner)
        return org


class WorkspaceFactory:
    """Factory for workspaces and workspace memberships."""

    @staticmethod
    async def create(
        session: AsyncSession,
        owner: User,
        name: str = "Test Workspace",
        organization_id: Optional[int] = None,
        is_private: bool = True,
    ) -> Workspace:
        workspace = Workspace(
            name=name,
            description=f"Description for {name}",
            owner_id=owner.id,
            organization_id=organization_id or owner.organization_id,
            is_private=is_private,
            member_count=1,
        )
        session.add(workspace)
        await session.commit()
        await session.refresh(workspace)
        return workspace

    @staticmethod
    async def add_member(
        session: AsyncSession,
        workspace: Workspace,
        user: User,
        role: str = Role.MEMBER.value,
    ) -> WorkspaceMember:
        """Add a membership row and keep member_count in step."""
        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=user.id,
            role=role,
            invited_by_id=workspace.owner_id,
        )
        session.add(membership)
        workspace.member_count = workspace.member_count + 1
        await session.commit()
        await session.refresh(membership)
        await session.refresh(workspace)
        return membership


class InvitationFactory:
    """Factory for organization and workspace invitations."""

    @staticmethod
    async def create_for_organization(
        session: AsyncSession,
        organization_id: int,
        email: str,
        role: str = Role.MEMBER.value,
        invited_by: Optional[User] = None,
        status: InvitationStatus = InvitationStatus.PENDING,
        expires_at: Optional[datetime] = None,
    ) -> OrganizationInvitation:
        invitation = OrganizationInvitation(
            organization_id=organization_id,
            email=email.lower(),
            role=role,
            invited_by_id=invited_by.id if invited_by else None,
            status=status,
            expires_at=expires_at or utc_now() + timedelta(days=7),
        )
        session.add(invitation)
        await session.commit()
        await session.refresh(invitation)
        return invitation

    @staticmethod
    async def create_for_workspace(
        session: AsyncSession,
        workspace: Workspace,
        invitee: User,
        role: str = Role.MEMBER.value,
        status: InvitationStatus = InvitationStatus.PENDING,
        expires_at: Optional[datetime] = None,
    ) -> WorkspaceInvitation:
        invitation = WorkspaceInvitation(
            workspace_id=workspace.id,
            invitee_id=invitee.id,
            role=role,
            invited_by_id=workspace.owner_id,
            status=status,
            expires_at=expires_at or utc_now() + timedelta(days=7),
        )
        session.add(invitation)
        await session.commit()
        await session.refresh(invitation)
        return invitation


class ContentFactory:
    """Factory for tasks and files inside a workspace."""

    @staticmethod
    async def create_task(
        session: AsyncSession,
        workspace: Workspace,
        created_by: User,
        title: str = "Write release notes",
        assigned_to: Optional[User] = None,
    ) -> Task:
        task = Task(
            workspace_id=workspace.id,
            title=title,
            created_by_id=created_by.id,
            assigned_to_id=assigned_to.id if assigned_to else None,
        )
        session.add(task)
        await session.commit()
        await session.refresh(task)
        return task

    @staticmethod
    async def create_file(
        session: AsyncSession,
        workspace: Workspace,
        uploaded_by: User,
        file_name: str = "roadmap.pdf",
    ) -> FileRecord:
        record = FileRecord(
            workspace_id=workspace.id,
            file_name=file_name,
            content_type="application/pdf",
            size_bytes=1024,
            storage_path=f"workspaces/{workspace.id}/{file_name}",
            uploaded_by_id=uploaded_by.id,
        )
        session.add(record)
        await session.commit()
        await session.refresh(record)
        return record
