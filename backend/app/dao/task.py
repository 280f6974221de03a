"""
Task Data Access Object.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.task import Task


class TaskDAO(BaseDAO[Task]):
    """Data Access Object for Task model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Task, session)

    async def get_by_workspace(self, workspace_id: int, skip: int = 0, limit: int = 100) -> List[Task]:
        """Tasks of a workspace, newest first."""
        result = await self.session.execute(
            select(Task)
            .where(Task.workspace_id == workspace_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())
