"""
Workspace and workspace membership Data Access Objects.
"""

from typing import List, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.file import FileRecord, FileShare
from app.models.invitation import WorkspaceInvitation
from app.models.task import Task
from app.models.workspace import Workspace, WorkspaceMember


class WorkspaceDAO(BaseDAO[Workspace]):
    """Data Access Object for Workspace model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Workspace, session)

    async def get_accessible(self, user_id: int, organization_id: int) -> List[Workspace]:
        """
        Workspaces in an organization the user owns or is a member of.

        Args:
            user_id: The caller
            organization_id: The caller's organization

        Returns:
            Workspaces ordered by creation
        """
        member_of = select(WorkspaceMember.workspace_id).where(
            WorkspaceMember.user_id == user_id
        )
        result = await self.session.execute(
            select(Workspace)
            .where(Workspace.organization_id == organization_id)
            .where(or_(Workspace.owner_id == user_id, Workspace.id.in_(member_of)))
            .order_by(Workspace.created_at, Workspace.id)
        )
        return list(result.scalars().all())

    async def adjust_member_count(self, workspace_id: int, by: int) -> Optional[Workspace]:
        await self.session.execute(
            update(Workspace)
            .where(Workspace.id == workspace_id)
            .values(member_count=Workspace.member_count + by)
        )
        workspace = await self.get_by_id(workspace_id)
        if workspace:
            await self.session.refresh(workspace)
        return workspace

    async def delete_with_contents(self, workspace_id: int) -> bool:
        """
        Delete a workspace and everything scoped to it.

        Returns:
            True if the workspace existed
        """
        files = select(FileRecord.id).where(FileRecord.workspace_id == workspace_id)
        await self.session.execute(delete(FileShare).where(FileShare.file_id.in_(files)))
        for model in (WorkspaceMember, WorkspaceInvitation, Task, FileRecord):
            await self.session.execute(delete(model).where(model.workspace_id == workspace_id))
        return await self.delete(workspace_id)


class WorkspaceMemberDAO(BaseDAO[WorkspaceMember]):
    """
    Data Access Object for WorkspaceMember model.

    WHY: Membership rows are keyed by (workspace_id, user_id) rather than
    by their surrogate id, so lookups and deletes here use the pair.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(WorkspaceMember, session)

    async def get_membership(self, workspace_id: int, user_id: int) -> Optional[WorkspaceMember]:
        result = await self.session.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_members(self, workspace_id: int) -> List[WorkspaceMember]:
        result = await self.session.execute(
            select(WorkspaceMember)
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.joined_at, WorkspaceMember.id)
        )
        return list(result.scalars().all())

    async def remove_membership(self, workspace_id: int, user_id: int) -> bool:
        """
        Delete a membership row.

        Returns:
            True if a row was removed
        """
        result = await self.session.execute(
            delete(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.rowcount > 0
