"""
Notification service.

WHAT: Creates notifications for access-control events and serves each
user's inbox (list, unread count, mark read, delete, preferences).

WHY: Services that change someone's access call ``notify`` so the affected
user hears about it. Like audit, a notification describes a change rather
than being part of it: if storing one fails, the change still goes
through and the failure is logged.

HOW: ``notify`` checks the recipient's preferences, then inserts inside a
SAVEPOINT. Inbox operations are scoped to the caller; touching another
user's notification is refused with 403.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AuthorizationError, ResourceNotFoundError
from app.dao.notification import NotificationDAO, NotificationPreferenceDAO
from app.models.base import utc_now
from app.models.notification import (
    DEFAULT_NOTIFICATION_PREFERENCES,
    Notification,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
)


logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notification inbox and event fan-in.

    Example:
        notifications = NotificationService(db)
        await notifications.notify(
            owner.id,
            NotificationType.MEMBER_JOINED,
            title="New member joined",
            message="Jane joined Acme",
            triggered_by_id=jane.id,
        )
    """

    def __init__(self, session: AsyncSession):
        self._session = session
        self.dao = NotificationDAO(session)
        self.preference_dao = NotificationPreferenceDAO(session)

    # ------------------------------------------------------------------
    # Creating
    # ------------------------------------------------------------------

    async def is_enabled_for(self, user_id: int, notification_type: NotificationType) -> bool:
        preference = await self.preference_dao.get_for_user(user_id)
        if preference is None:
            return DEFAULT_NOTIFICATION_PREFERENCES["is_enabled"]
        return preference.allows(notification_type)

    async def notify(
        self,
        user_id: int,
        notification_type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        extra_data: Optional[Dict[str, Any]] = None,
        triggered_by_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """
        Store a notification for one user.

        Returns:
            The Notification, or None when the user muted this type or the
            insert failed. Never raises.
        """
        try:
            if not await self.is_enabled_for(user_id, notification_type):
                logger.debug(
                    "Notification %s disabled for user %s", notification_type.value, user_id
                )
                return None
            async with self._session.begin_nested():
                return await self.dao.create(
                    user_id=user_id,
                    type=notification_type,
                    title=title,
                    message=message,
                    priority=priority,
                    extra_data=extra_data or {},
                    triggered_by_id=triggered_by_id,
                    is_read=False,
                )
        except Exception as e:
            logger.error(
                "Failed to create %s notification for user %s: %s",
                notification_type.value,
                user_id,
                e,
                exc_info=True,
            )
            return None

    async def notify_many(
        self,
        user_ids: Iterable[Optional[int]],
        notification_type: NotificationType,
        title: str,
        message: str,
        **kwargs: Any,
    ) -> List[Notification]:
        """Notify each distinct user once; None ids are skipped."""
        created = []
        for user_id in dict.fromkeys(u for u in user_ids if u is not None):
            notification = await self.notify(user_id, notification_type, title, message, **kwargs)
            if notification is not None:
                created.append(notification)
        return created

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    async def list_for_user(
        self,
        user_id: int,
        limit: int = 50,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
    ) -> List[Notification]:
        return await self.dao.get_for_user(
            user_id, limit=limit, unread_only=unread_only, notification_type=notification_type
        )

    async def unread_count(self, user_id: int) -> int:
        return await self.dao.count_unread(user_id)

    async def _get_owned(self, user_id: int, notification_id: int) -> Notification:
        notification = await self.dao.get_by_id(notification_id)
        if notification is None:
            raise ResourceNotFoundError(message="Notification not found")
        if notification.user_id != user_id:
            raise AuthorizationError(message="Access denied")
        return notification

    async def mark_read(self, user_id: int, notification_id: int) -> Notification:
        """Mark one notification read. Already-read notifications keep their read_at."""
        notification = await self._get_owned(user_id, notification_id)
        if notification.is_read:
            return notification
        return await self.dao.update(notification.id, is_read=True, read_at=utc_now())

    async def mark_all_read(self, user_id: int) -> int:
        """Returns how many notifications changed; 0 on a repeated call."""
        return await self.dao.mark_all_read(user_id)

    async def delete(self, user_id: int, notification_id: int) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await self.dao.delete(notification.id)

    # ------------------------------------------------------------------
    # Preferences
    # ------------------------------------------------------------------

    async def get_preferences(self, user_id: int) -> NotificationPreference:
        return await self.preference_dao.get_or_create(user_id)

    async def update_preferences(self, user_id: int, **changes: Any) -> NotificationPreference:
        """
        Merge the given settings into the user's preferences.

        Fields left out (or None) keep their stored value.
        """
        preference = await self.preference_dao.get_or_create(user_id)
        values = {field: value for field, value in changes.items() if value is not None}
        if "muted_types" in values:
            values["muted_types"] = sorted({NotificationType(t).value for t in values["muted_types"]})
        if not values:
            return preference
        return await self.preference_dao.update(preference.id, **values)
