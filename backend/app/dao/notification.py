"""
Notification Data Access Objects.

WHAT: Inbox queries (newest first, unread filter, unread count), the bulk
mark-all-read update, and the one-row-per-user preference record.

WHY: Every inbox query is scoped by recipient; no method here returns
another user's notifications.
"""

import copy
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.models.base import utc_now
from app.models.notification import (
    DEFAULT_NOTIFICATION_PREFERENCES,
    Notification,
    NotificationPreference,
    NotificationType,
)


class NotificationDAO(BaseDAO[Notification]):
    """Data Access Object for Notification model."""

    def __init__(self, session: AsyncSession):
        super().__init__(Notification, session)

    async def get_for_user(
        self,
        user_id: int,
        limit: int = 50,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
    ) -> List[Notification]:
        """A user's notifications, newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_unread(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return int(result.scalar_one())

    async def mark_all_read(self, user_id: int) -> int:
        """
        Mark every unread notification of a user as read.

        Only unread rows are touched, so a repeated call changes nothing
        and returns 0.

        Returns:
            Number of notifications that changed state
        """
        result = await self.session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utc_now())
        )
        return result.rowcount or 0


class NotificationPreferenceDAO(BaseDAO[NotificationPreference]):
    """Data Access Object for NotificationPreference model."""

    def __init__(self, session: AsyncSession):
        super().__init__(NotificationPreference, session)

    async def get_for_user(self, user_id: int) -> Optional[NotificationPreference]:
        result = await self.session.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, user_id: int) -> NotificationPreference:
        """The user's preference row, created with the defaults on first use."""
        preference = await self.get_for_user(user_id)
        if preference is not None:
            return preference
        return await self.create(
            user_id=user_id,
            muted_types=[],
            **copy.deepcopy(DEFAULT_NOTIFICATION_PREFERENCES),
        )
