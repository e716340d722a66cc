"""
In-memory implementations of the store protocols.

Used for mock mode (SNOWFLAKE_MOCK_MODE=true) and throughout the tests.
All stores share one MemoryDatabase so joins that the SQL repositories do
(session activity needs the client's name) work the same way here.

Not suitable for production, but perfect for:
- Local development
- Unit tests
- CI/CD environments
"""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...core.coaching.models import (
    Client,
    CoachingSession,
    FeedbackRecord,
    FeedbackSummary,
    FollowUpTrigger,
    Notification,
    SessionActivity,
    SessionContext,
    SessionStatus,
    SuggestionInteraction,
)
from ...core.coaching.stores import SessionRow


logger = logging.getLogger(__name__)


def row_from_session(session: CoachingSession) -> SessionRow:
    """The row a session would be stored as."""
    return SessionRow(
        id=session.id,
        target_id=session.target_id,
        coach_id=session.coach_id,
        status=session.status.value,
        created_at=session.created_at,
        raw_chat_history=[m.to_dict() for m in session.messages],
        raw_strategist_output=(
            session.strategist_output.to_dict() if session.strategist_output else None
        ),
        case_data=copy.deepcopy(session.case_data),
        parent_session_id=session.parent_session_id,
        is_continued=session.is_continued,
    )


@dataclass
class MemoryDatabase:
    """Tables keyed by id."""
    clients: dict[str, Client] = field(default_factory=dict)
    sessions: dict[str, SessionRow] = field(default_factory=dict)
    contexts: dict[str, SessionContext] = field(default_factory=dict)
    feedback: dict[str, FeedbackRecord] = field(default_factory=dict)
    interactions: dict[str, SuggestionInteraction] = field(default_factory=dict)
    follow_ups: dict[str, FollowUpTrigger] = field(default_factory=dict)
    notifications: dict[str, Notification] = field(default_factory=dict)

    def clear(self) -> None:
        for table in (
            self.clients, self.sessions, self.contexts, self.feedback,
            self.interactions, self.follow_ups, self.notifications,
        ):
            table.clear()


class _MemoryStore:
    def __init__(self, db: MemoryDatabase) -> None:
        self._db = db


class MemorySessionStore(_MemoryStore):

    async def create_session(self, session: CoachingSession) -> None:
        self._db.sessions[session.id] = row_from_session(session)

    async def fetch_session(self, session_id: str) -> Optional[SessionRow]:
        row = self._db.sessions.get(session_id)
        return copy.deepcopy(row) if row else None

    async def save_session(self, session: CoachingSession) -> None:
        existing = self._db.sessions.get(session.id)
        row = row_from_session(session)
        if existing is not None:
            row.feedback_rating = existing.feedback_rating
            row.feedback_submitted_at = existing.feedback_submitted_at
            row.feedback_data = existing.feedback_data
        self._db.sessions[session.id] = row

    async def list_activity(
        self,
        coach_id: str,
        statuses: Optional[list[SessionStatus]] = None,
        limit: int = 10,
    ) -> list[SessionActivity]:
        wanted = {s.value for s in statuses} if statuses else None
        rows = [
            row for row in self._db.sessions.values()
            if row.coach_id == coach_id and (wanted is None or row.status in wanted)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)

        activity = []
        for row in rows[:limit]:
            client = self._db.clients.get(row.target_id)
            try:
                status = SessionStatus(row.status)
            except ValueError:
                status = SessionStatus.ERROR
            activity.append(SessionActivity(
                session_id=row.id,
                target_id=row.target_id,
                target_name=client.name if client else "",
                status=status,
                created_at=row.created_at,
                raw_message_count=row.raw_message_count,
            ))
        return activity

    async def list_for_client(
        self,
        coach_id: str,
        target_id: str,
        exclude_session_id: Optional[str] = None,
        limit: int = 5,
    ) -> list[SessionRow]:
        rows = [
            row for row in self._db.sessions.values()
            if row.coach_id == coach_id
            and row.target_id == target_id
            and row.id != exclude_session_id
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [copy.deepcopy(row) for row in rows[:limit]]

    async def update_feedback_summary(self, session_id: str, summary: FeedbackSummary) -> None:
        row = self._db.sessions.get(session_id)
        if row is None:
            raise KeyError(f"Session {session_id} not found")
        row.feedback_rating = summary.rating
        row.feedback_submitted_at = summary.submitted_at
        row.feedback_data = summary.to_feedback_data()


class MemorySessionContextStore(_MemoryStore):

    async def upsert_context(self, context: SessionContext) -> None:
        self._db.contexts[context.session_id] = copy.deepcopy(context)

    async def fetch_context(self, session_id: str) -> Optional[SessionContext]:
        context = self._db.contexts.get(session_id)
        return copy.deepcopy(context) if context else None


class MemoryClientStore(_MemoryStore):

    async def list_clients(self, coach_id: str) -> list[Client]:
        clients = [copy.copy(c) for c in self._db.clients.values() if c.coach_id == coach_id]
        clients.sort(key=lambda c: c.created_at, reverse=True)
        return clients

    async def fetch_client(self, client_id: str) -> Optional[Client]:
        client = self._db.clients.get(client_id)
        return copy.copy(client) if client else None

    async def insert_client(self, client: Client) -> None:
        self._db.clients[client.id] = copy.copy(client)

    async def set_favorite(self, client_id: str, is_favorite: bool) -> None:
        client = self._db.clients.get(client_id)
        if client is None:
            raise KeyError(f"Client {client_id} not found")
        client.is_favorite = is_favorite


class MemoryFeedbackStore(_MemoryStore):

    async def insert_feedback(self, record: FeedbackRecord) -> None:
        self._db.feedback[record.id] = record

    async def list_feedback(
        self,
        coach_id: str,
        target_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FeedbackRecord]:
        records = [
            r for r in self._db.feedback.values()
            if r.coach_id == coach_id and (target_id is None or r.target_id == target_id)
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records if limit is None else records[:limit]


class MemoryInteractionStore(_MemoryStore):

    async def insert_interaction(self, interaction: SuggestionInteraction) -> None:
        self._db.interactions[interaction.id] = copy.copy(interaction)

    async def set_effectiveness(self, coach_id: str, suggestion_id: str, was_effective: bool) -> int:
        updated = 0
        for interaction in self._db.interactions.values():
            if interaction.suggestion_id == suggestion_id and interaction.coach_id == coach_id:
                interaction.was_effective = was_effective
                updated += 1
        return updated


class MemoryFollowUpStore(_MemoryStore):

    async def fetch_trigger(self, trigger_id: str) -> Optional[FollowUpTrigger]:
        trigger = self._db.follow_ups.get(trigger_id)
        return copy.copy(trigger) if trigger else None

    async def list_pending(self, target_id: str) -> list[FollowUpTrigger]:
        pending = [
            copy.copy(t) for t in self._db.follow_ups.values()
            if t.target_id == target_id and not t.is_triggered
        ]
        pending.sort(key=lambda t: t.created_at, reverse=True)
        return pending

    async def mark_triggered(self, trigger_ids: list[str], triggered_at: datetime) -> None:
        for trigger_id in trigger_ids:
            trigger = self._db.follow_ups.get(trigger_id)
            if trigger is not None:
                trigger.is_triggered = True
                trigger.triggered_at = triggered_at


class MemoryNotificationStore(_MemoryStore):

    async def list_notifications(self, coach_id: str) -> list[Notification]:
        notifications = [
            copy.copy(n) for n in self._db.notifications.values() if n.coach_id == coach_id
        ]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications

    async def mark_read(self, coach_id: str, notification_id: str) -> None:
        notification = self._db.notifications.get(notification_id)
        if notification is not None and notification.coach_id == coach_id:
            notification.is_read = True

    async def mark_all_read(self, coach_id: str) -> None:
        for notification in self._db.notifications.values():
            if notification.coach_id == coach_id:
                notification.is_read = True
