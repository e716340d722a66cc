"""Follow-up trigger and notification endpoints."""

import logging
from datetime import datetime
from typing import Any

from fastapi import APIRouter, status
from pydantic import BaseModel

from ...core.coaching.clients import ClientRoster
from ..dependencies import CoachId, FollowUpsDep, NotificationsDep, StoresDep

logger = logging.getLogger(__name__)

router = APIRouter()
notifications_router = APIRouter()


class FollowUpItem(BaseModel):
    id: str
    session_id: str
    target_id: str
    trigger_type: str
    question_text: str
    context_reference: dict[str, Any]
    created_at: datetime


class DismissResponse(BaseModel):
    dismissed: int


class NotificationItem(BaseModel):
    id: str
    title: str
    message: str
    type: str
    is_read: bool
    created_at: datetime


class NotificationsResponse(BaseModel):
    notifications: list[NotificationItem]
    unread_count: int


# ---------------------------------------------------------------------------
# Follow-ups
# ---------------------------------------------------------------------------

@router.get("/{client_id}", response_model=list[FollowUpItem], summary="Pending follow-ups for a client")
async def pending_follow_ups(
    client_id: str,
    coach_id: CoachId,
    stores: StoresDep,
    follow_ups: FollowUpsDep,
) -> list[FollowUpItem]:
    await ClientRoster(stores.clients, coach_id).get(client_id)
    return [
        FollowUpItem(
            id=t.id,
            session_id=t.session_id,
            target_id=t.target_id,
            trigger_type=t.trigger_type,
            question_text=t.question_text,
            context_reference=t.context_reference,
            created_at=t.created_at,
        )
        for t in await follow_ups.pending(client_id)
    ]


@router.post(
    "/triggers/{trigger_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark a follow-up as raised",
)
async def trigger_follow_up(
    trigger_id: str,
    coach_id: CoachId,
    follow_ups: FollowUpsDep,
) -> None:
    await follow_ups.mark_triggered(coach_id, trigger_id)


@router.post(
    "/{client_id}/dismiss-all",
    response_model=DismissResponse,
    summary="Dismiss every pending follow-up for a client",
)
async def dismiss_all_follow_ups(
    client_id: str,
    coach_id: CoachId,
    stores: StoresDep,
    follow_ups: FollowUpsDep,
) -> DismissResponse:
    await ClientRoster(stores.clients, coach_id).get(client_id)
    return DismissResponse(dismissed=await follow_ups.dismiss_all(client_id))


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@notifications_router.get("", response_model=NotificationsResponse, summary="My notifications")
async def list_notifications(
    coach_id: CoachId,
    notifications: NotificationsDep,
) -> NotificationsResponse:
    inbox = await notifications.inbox(coach_id)
    return NotificationsResponse(
        notifications=[
            NotificationItem(
                id=n.id,
                title=n.title,
                message=n.message,
                type=n.type.value,
                is_read=n.is_read,
                created_at=n.created_at,
            )
            for n in inbox.notifications
        ],
        unread_count=inbox.unread_count,
    )


@notifications_router.post(
    "/read-all",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark all notifications read",
)
async def mark_all_read(coach_id: CoachId, notifications: NotificationsDep) -> None:
    await notifications.mark_all_read(coach_id)


@notifications_router.post(
    "/{notification_id}/read",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Mark a notification read",
)
async def mark_read(
    notification_id: str,
    coach_id: CoachId,
    notifications: NotificationsDep,
) -> None:
    await notifications.mark_read(coach_id, notification_id)
