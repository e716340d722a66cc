"""
Domain models for coaching sessions.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs. The domain
should be expressible without knowing how it's stored or transmitted.

Identifiers are plain strings because conversation history arrives as
untyped JSON and has to be validated against them as such.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from .errors import InvalidFeedbackError


def utcnow() -> datetime:
    """Timezone-aware current instant."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class SessionStatus(Enum):
    """Lifecycle status of a coaching session. See state_machine.py."""
    GATHERING_INFO = "gathering_info"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class MessageSender(Enum):
    USER = "user"
    AI = "ai"


@dataclass(frozen=True)
class ChatMessage:
    """
    A single message in the coaching conversation.

    The timestamp is kept as the ISO-8601 string it was stored as. Stored
    history written by older clients sometimes carries garbage here, and
    repair_chat_history() needs to see it to heal it.
    """
    id: str
    content: str
    sender: MessageSender
    timestamp: str

    @classmethod
    def create(
        cls,
        content: str,
        sender: MessageSender,
        now: Optional[datetime] = None,
    ) -> "ChatMessage":
        return cls(
            id=new_id(),
            content=content,
            sender=sender,
            timestamp=(now or utcnow()).isoformat(),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "content": self.content,
            "sender": self.sender.value,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class StrategySuggestion:
    """One recommendation inside the strategist's final analysis."""
    title: str
    description: str
    why_it_works: str

    def to_dict(self) -> dict[str, str]:
        return {
            "title": self.title,
            "description": self.description,
            "why_it_works": self.why_it_works,
        }


@dataclass
class StrategistOutput:
    """
    The analysis bundle attached to a session when it completes.

    Only built through validate_strategist_output() when it comes from
    storage or the provider, so the field types can be trusted.
    """
    analysis: Optional[str] = None
    suggestions: list[StrategySuggestion] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.analysis and not self.suggestions

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.analysis is not None:
            data["analysis"] = self.analysis
        data["suggestions"] = [s.to_dict() for s in self.suggestions]
        return data


@dataclass
class FeedbackSummary:
    """Denormalized feedback block stored on the session row."""
    rating: int
    submitted_at: datetime
    outcome_rating: Optional[int] = None
    suggestions_tried_count: int = 0
    has_detailed_feedback: bool = False

    def to_feedback_data(self) -> dict[str, Any]:
        """The `feedback_data` column payload."""
        return {
            "outcome_rating": self.outcome_rating,
            "suggestions_tried_count": self.suggestions_tried_count,
            "has_detailed_feedback": self.has_detailed_feedback,
        }


@dataclass
class CoachingSession:
    """
    One coaching conversation about a client.

    This is the aggregate root: it owns the message sequence, the final
    analysis and the feedback summary. Status changes go through
    state_machine.apply_transition(); assigning `status` directly bypasses
    the invariant that strategist output exists exactly when complete.
    """
    id: str = field(default_factory=new_id)
    target_id: str = ""
    coach_id: str = ""
    status: SessionStatus = SessionStatus.GATHERING_INFO
    messages: list[ChatMessage] = field(default_factory=list)
    strategist_output: Optional[StrategistOutput] = None
    feedback: Optional[FeedbackSummary] = None
    parent_session_id: Optional[str] = None
    is_continued: bool = False
    case_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)

    def add_message(
        self,
        content: str,
        sender: MessageSender,
        now: Optional[datetime] = None,
    ) -> ChatMessage:
        """Append a message to the conversation."""
        message = ChatMessage.create(content, sender, now=now)
        self.messages.append(message)
        return message

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def last_ai_message(self) -> Optional[ChatMessage]:
        for message in reversed(self.messages):
            if message.sender is MessageSender.AI:
                return message
        return None

    @property
    def is_complete(self) -> bool:
        return self.status is SessionStatus.COMPLETE


@dataclass
class SessionActivity:
    """
    Lightweight view of a session row used by the continuation analyzer and
    the suggestion generator.

    `raw_message_count` is the length of the stored history before any
    sanitizing, which is what the continuation heuristics count.
    """
    session_id: str
    target_id: str
    target_name: str
    status: SessionStatus
    created_at: datetime
    raw_message_count: int = 0


@dataclass
class Client:
    """The person a coach holds sessions about. Stored in `targets`."""
    id: str = field(default_factory=new_id)
    name: str = ""
    coach_id: str = ""
    created_at: datetime = field(default_factory=utcnow)
    is_favorite: bool = False

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Client name cannot be empty")


@dataclass(frozen=True)
class ContinuableSession:
    """A past session that may be resumed, with the reason why. Never stored."""
    id: str
    target_name: str
    target_id: str
    last_activity: datetime
    message_count: int
    status: SessionStatus
    can_continue: bool
    continuation_reason: str


RATING_RANGE = range(1, 6)


@dataclass
class FeedbackSubmission:
    """What the coach fills in after a session."""
    session_id: str
    target_id: str
    rating: int
    suggestions_tried_count: int = 0
    outcome_rating: Optional[int] = None
    what_worked_well: Optional[str] = None
    what_didnt_work: Optional[str] = None
    additional_notes: Optional[str] = None
    suggested_strategies: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.rating not in RATING_RANGE:
            raise InvalidFeedbackError("Rating must be between 1 and 5")
        if self.outcome_rating is not None and self.outcome_rating not in RATING_RANGE:
            raise InvalidFeedbackError("Outcome rating must be between 1 and 5")
        if self.suggestions_tried_count < 0:
            raise InvalidFeedbackError("suggestions_tried_count cannot be negative")

    @property
    def has_detailed_feedback(self) -> bool:
        return any(
            text and text.strip()
            for text in (self.what_worked_well, self.what_didnt_work, self.additional_notes)
        )

    @property
    def suggestions_tried(self) -> list[str]:
        """Only the first N strategies, N being the count the coach reported."""
        return self.suggested_strategies[:self.suggestions_tried_count]


@dataclass(frozen=True)
class FeedbackRecord:
    """A persisted feedback submission (`user_feedback`)."""
    id: str
    coach_id: str
    session_id: str
    target_id: str
    rating: int
    created_at: datetime
    suggestions_tried: tuple[str, ...] = ()
    outcome_rating: Optional[int] = None
    what_worked_well: Optional[str] = None
    what_didnt_work: Optional[str] = None
    additional_notes: Optional[str] = None


class SuggestionCategory(Enum):
    TIMING = "timing"
    APPROACH = "approach"
    TECHNIQUE = "technique"
    FOLLOW_UP = "follow-up"


class SuggestionPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Suggestion:
    """
    A coaching-practice recommendation from the rule engine.

    Recomputed on every pass and never stored; only applying one is logged.
    """
    id: str
    title: str
    description: str
    category: SuggestionCategory
    priority: SuggestionPriority
    rationale: str
    action_items: tuple[str, ...] = ()


@dataclass(frozen=True)
class SmartSuggestion:
    """An in-conversation suggestion returned by the provider."""
    id: str
    text: str
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    type: str = "general"


@dataclass
class SuggestionInteraction:
    """A coach picking a smart suggestion (`suggestion_interactions`)."""
    suggestion_id: str
    session_id: str
    coach_id: str
    target_id: str
    selected_text: str
    message_count_at_selection: int
    id: str = field(default_factory=new_id)
    was_effective: Optional[bool] = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def follow_up_context(self) -> dict[str, Any]:
        return {
            "selected_text": self.selected_text,
            "message_count_at_selection": self.message_count_at_selection,
        }


@dataclass
class FollowUpTrigger:
    """
    A deferred question to raise in a later session with the same client.

    Created by background analysis; the coach-facing flow only marks them
    triggered. They are never deleted.
    """
    session_id: str
    target_id: str
    trigger_type: str
    question_text: str
    id: str = field(default_factory=new_id)
    context_reference: dict[str, Any] = field(default_factory=dict)
    is_triggered: bool = False
    created_at: datetime = field(default_factory=utcnow)
    triggered_at: Optional[datetime] = None


class NotificationType(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Any) -> "NotificationType":
        """Unknown stored types display as info."""
        try:
            return cls(value)
        except ValueError:
            return cls.INFO


@dataclass
class Notification:
    coach_id: str
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    id: str = field(default_factory=new_id)
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class SessionContext:
    """Background about the relationship captured for a session (`session_contexts`)."""
    session_id: str
    relationship_type: str
    communication_style: Optional[str] = None
    relationship_duration: Optional[str] = None
    goals: list[str] = field(default_factory=list)
    challenges: list[str] = field(default_factory=list)
    context_data: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=utcnow)
