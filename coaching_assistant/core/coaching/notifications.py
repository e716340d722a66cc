"""In-app notifications for a coach."""

import logging
from dataclasses import dataclass

from .models import Notification
from .stores import NotificationStore


logger = logging.getLogger(__name__)


@dataclass
class NotificationInbox:
    notifications: list[Notification]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n.is_read)


class NotificationService:

    def __init__(self, store: NotificationStore) -> None:
        self._store = store

    async def inbox(self, coach_id: str) -> NotificationInbox:
        return NotificationInbox(await self._store.list_notifications(coach_id))

    async def mark_read(self, coach_id: str, notification_id: str) -> None:
        await self._store.mark_read(coach_id, notification_id)
        logger.debug(
            "Notification read",
            extra={"notification_id": notification_id, "coach_id": coach_id}
        )

    async def mark_all_read(self, coach_id: str) -> None:
        await self._store.mark_all_read(coach_id)
        logger.debug("All notifications read", extra={"coach_id": coach_id})
