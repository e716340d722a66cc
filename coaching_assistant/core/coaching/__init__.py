"""
Coaching session logic.

Contains the domain models, the session state machine, the validation
layer for stored conversation data and the services built on top of them.
"""

from .errors import (
    ClientAccessError,
    CoachingError,
    FeedbackWriteError,
    InvalidFeedbackError,
    ProviderError,
    SessionAccessError,
    SessionLoadTimeout,
    StrategistError,
    TransitionRejected,
)
from .models import (
    ChatMessage,
    Client,
    CoachingSession,
    ContinuableSession,
    FeedbackRecord,
    FeedbackSubmission,
    MessageSender,
    SessionStatus,
    StrategistOutput,
    Suggestion,
)
from .state_machine import SessionEvent, apply_transition, transition
from .lifecycle import SessionLifecycleService

__all__ = [
    "ClientAccessError",
    "CoachingError",
    "FeedbackWriteError",
    "InvalidFeedbackError",
    "ProviderError",
    "SessionAccessError",
    "SessionLoadTimeout",
    "StrategistError",
    "TransitionRejected",
    "ChatMessage",
    "Client",
    "CoachingSession",
    "ContinuableSession",
    "FeedbackRecord",
    "FeedbackSubmission",
    "MessageSender",
    "SessionStatus",
    "StrategistOutput",
    "Suggestion",
    "SessionEvent",
    "apply_transition",
    "transition",
    "SessionLifecycleService",
]
