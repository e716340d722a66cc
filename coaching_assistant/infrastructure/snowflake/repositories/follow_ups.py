"""Snowflake repositories for follow-up triggers and notifications."""

import logging
from datetime import datetime
from typing import Optional

from ....core.coaching.models import FollowUpTrigger, Notification, NotificationType
from .base import SnowflakeRepository, as_utc, parse_variant_json


logger = logging.getLogger(__name__)


TRIGGER_COLUMNS = """
    id, session_id, target_id, trigger_type, question_text,
    context_reference, is_triggered, created_at, triggered_at
"""


def _build_trigger(row) -> FollowUpTrigger:
    reference = parse_variant_json(row[5])
    return FollowUpTrigger(
        id=row[0],
        session_id=row[1],
        target_id=row[2],
        trigger_type=row[3],
        question_text=row[4],
        context_reference=reference if isinstance(reference, dict) else {},
        is_triggered=bool(row[6]),
        created_at=as_utc(row[7]),
        triggered_at=as_utc(row[8]),
    )


class FollowUpRepository(SnowflakeRepository):

    async def fetch_trigger(self, trigger_id: str) -> Optional[FollowUpTrigger]:
        row = await self._fetchone(f"""
            SELECT {TRIGGER_COLUMNS}
            FROM follow_up_triggers
            WHERE id = %s
        """, (trigger_id,))
        return _build_trigger(row) if row else None

    async def list_pending(self, target_id: str) -> list[FollowUpTrigger]:
        rows = await self._fetchall(f"""
            SELECT {TRIGGER_COLUMNS}
            FROM follow_up_triggers
            WHERE target_id = %s
            AND is_triggered = FALSE
            ORDER BY created_at DESC
        """, (target_id,))
        return [_build_trigger(row) for row in rows]

    async def mark_triggered(self, trigger_ids: list[str], triggered_at: datetime) -> None:
        if not trigger_ids:
            return
        placeholders = ", ".join(["%s"] * len(trigger_ids))
        await self._write(f"""
            UPDATE follow_up_triggers SET
                is_triggered = TRUE,
                triggered_at = %s
            WHERE id IN ({placeholders})
        """, (triggered_at, *trigger_ids), "mark_triggered")


class NotificationRepository(SnowflakeRepository):

    async def list_notifications(self, coach_id: str) -> list[Notification]:
        rows = await self._fetchall("""
            SELECT id, user_id, title, message, type, is_read, created_at
            FROM notifications
            WHERE user_id = %s
            ORDER BY created_at DESC
        """, (coach_id,))
        return [
            Notification(
                id=row[0],
                coach_id=row[1],
                title=row[2] or "",
                message=row[3] or "",
                type=NotificationType.parse(row[4]),
                is_read=bool(row[5]),
                created_at=as_utc(row[6]),
            )
            for row in rows
        ]

    async def mark_read(self, coach_id: str, notification_id: str) -> None:
        await self._write("""
            UPDATE notifications SET is_read = TRUE
            WHERE id = %s AND user_id = %s
        """, (notification_id, coach_id), "mark_read")

    async def mark_all_read(self, coach_id: str) -> None:
        await self._write("""
            UPDATE notifications SET is_read = TRUE
            WHERE user_id = %s AND is_read = FALSE
        """, (coach_id,), "mark_all_read")
