"""
Persistence interfaces for the coaching core.

Services depend on these protocols, never on a database driver. The
Snowflake repositories and the in-memory stores both implement them, which
is what lets the core be tested without a database.

All methods are async: the view layer keeps several loads outstanding at
once and must never block on one of them.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol

from .models import (
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


@dataclass
class SessionRow:
    """
    A `coaching_sessions` row as it sits in storage.

    History and strategist output are left exactly as stored. Turning a row
    into a CoachingSession goes through validation.session_from_row(), so
    nothing unvalidated reaches the in-memory message sequence.
    """
    id: str
    target_id: str
    coach_id: str
    status: str
    created_at: datetime
    raw_chat_history: Any = None
    raw_strategist_output: Any = None
    case_data: Any = None
    parent_session_id: Optional[str] = None
    is_continued: bool = False
    feedback_rating: Optional[int] = None
    feedback_submitted_at: Optional[datetime] = None
    feedback_data: dict[str, Any] = field(default_factory=dict)

    @property
    def raw_message_count(self) -> int:
        if isinstance(self.raw_chat_history, list):
            return len(self.raw_chat_history)
        return 0


class SessionStore(Protocol):

    async def create_session(self, session: CoachingSession) -> None:
        ...

    async def fetch_session(self, session_id: str) -> Optional[SessionRow]:
        """Return the row for `session_id`, or None if it doesn't exist."""
        ...

    async def save_session(self, session: CoachingSession) -> None:
        """Persist messages, status, strategist output and case data."""
        ...

    async def list_activity(
        self,
        coach_id: str,
        statuses: Optional[list[SessionStatus]] = None,
        limit: int = 10,
    ) -> list[SessionActivity]:
        """The coach's sessions, most recent first."""
        ...

    async def list_for_client(
        self,
        coach_id: str,
        target_id: str,
        exclude_session_id: Optional[str] = None,
        limit: int = 5,
    ) -> list[SessionRow]:
        ...

    async def update_feedback_summary(self, session_id: str, summary: FeedbackSummary) -> None:
        """Write the denormalized feedback block onto the session row."""
        ...


class SessionContextStore(Protocol):

    async def upsert_context(self, context: SessionContext) -> None:
        ...

    async def fetch_context(self, session_id: str) -> Optional[SessionContext]:
        ...


class ClientStore(Protocol):

    async def list_clients(self, coach_id: str) -> list[Client]:
        """The coach's clients, newest first."""
        ...

    async def fetch_client(self, client_id: str) -> Optional[Client]:
        ...

    async def insert_client(self, client: Client) -> None:
        ...

    async def set_favorite(self, client_id: str, is_favorite: bool) -> None:
        ...


class FeedbackStore(Protocol):

    async def insert_feedback(self, record: FeedbackRecord) -> None:
        ...

    async def list_feedback(
        self,
        coach_id: str,
        target_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[FeedbackRecord]:
        """Most recent first."""
        ...


class InteractionStore(Protocol):

    async def insert_interaction(self, interaction: SuggestionInteraction) -> None:
        ...

    async def set_effectiveness(self, coach_id: str, suggestion_id: str, was_effective: bool) -> int:
        """Mark the coach's interactions with `suggestion_id`. Returns rows updated."""
        ...


class FollowUpStore(Protocol):

    async def fetch_trigger(self, trigger_id: str) -> Optional[FollowUpTrigger]:
        ...

    async def list_pending(self, target_id: str) -> list[FollowUpTrigger]:
        """Untriggered triggers for a client, newest first."""
        ...

    async def mark_triggered(self, trigger_ids: list[str], triggered_at: datetime) -> None:
        ...


class NotificationStore(Protocol):

    async def list_notifications(self, coach_id: str) -> list[Notification]:
        ...

    async def mark_read(self, coach_id: str, notification_id: str) -> None:
        ...

    async def mark_all_read(self, coach_id: str) -> None:
        ...

