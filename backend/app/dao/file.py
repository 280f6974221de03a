"""
File metadata Data Access Objects.
"""

from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.file import FileRecord, FileShare


class FileRecordDAO(BaseDAO[FileRecord]):
    """Data Access Object for FileRecord model."""

    def __init__(self, session: AsyncSession):
        super().__init__(FileRecord, session)

    async def get_by_workspace(self, workspace_id: int, skip: int = 0, limit: int = 100) -> List[FileRecord]:
        result = await self.session.execute(
            select(FileRecord)
            .where(FileRecord.workspace_id == workspace_id)
            .order_by(FileRecord.created_at.desc(), FileRecord.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_shared_with(self, user_id: int, skip: int = 0, limit: int = 100) -> List[FileRecord]:
        """Files shared with a user, most recently shared first."""
        result = await self.session.execute(
            select(FileRecord)
            .join(FileShare, FileShare.file_id == FileRecord.id)
            .where(FileShare.shared_with_id == user_id)
            .order_by(FileShare.created_at.desc(), FileShare.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())


class FileShareDAO(BaseDAO[FileShare]):
    """Data Access Object for FileShare model."""

    def __init__(self, session: AsyncSession):
        super().__init__(FileShare, session)

    async def get_share(self, file_id: int, user_id: int) -> Optional[FileShare]:
        result = await self.session.execute(
            select(FileShare).where(FileShare.file_id == file_id, FileShare.shared_with_id == user_id)
        )
        return result.scalar_one_or_none()

    async def share(self, file_id: int, shared_by_id: int, shared_with_id: int, permission: str) -> FileShare:
        """Create the share, or update the permission of an existing one."""
        existing = await self.get_share(file_id, shared_with_id)
        if existing is not None:
            return await self.update(existing.id, permission=permission, shared_by_id=shared_by_id)
        return await self.create(
            file_id=file_id,
            shared_by_id=shared_by_id,
            shared_with_id=shared_with_id,
            permission=permission,
        )

    async def delete_for_files(self, file_ids: List[int]) -> int:
        if not file_ids:
            return 0
        result = await self.session.execute(delete(FileShare).where(FileShare.file_id.in_(file_ids)))
        return result.rowcount or 0
