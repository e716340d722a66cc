"""
Error taxonomy for the coaching core.

Malformed stored conversation data is never an error here: the validation
layer drops or repairs it and logs what it did. Everything below is a
condition a caller has to react to.
"""


class CoachingError(Exception):
    """Base class for coaching domain errors."""
    pass


class SessionAccessError(CoachingError):
    """The session does not exist or belongs to another coach."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class ClientAccessError(CoachingError):
    """The client does not exist or belongs to another coach."""

    def __init__(self, client_id: str) -> None:
        super().__init__(f"Client {client_id} not found")
        self.client_id = client_id


class FollowUpAccessError(CoachingError):
    """The follow-up trigger does not exist or is about another coach's client."""

    def __init__(self, trigger_id: str) -> None:
        super().__init__(f"Follow-up {trigger_id} not found")
        self.trigger_id = trigger_id


class SessionLoadTimeout(CoachingError):
    """A session load did not finish before its deadline."""

    def __init__(self, session_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Loading session {session_id} timed out after {timeout_seconds:g}s"
        )
        self.session_id = session_id
        self.timeout_seconds = timeout_seconds


class ProviderError(CoachingError):
    """The remote coaching provider failed or returned something unusable."""
    pass


class ProviderUnavailable(ProviderError):
    """The provider isn't configured, so no call was made."""
    pass


class StrategistError(CoachingError):
    """Strategist analysis failed and the session was rolled back."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"Strategist analysis failed for session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


class TransitionRejected(CoachingError):
    """A session status change was requested that the state machine forbids."""

    def __init__(self, current: str, event: str, reason: str) -> None:
        super().__init__(f"Cannot apply {event} to a session in '{current}': {reason}")
        self.current = current
        self.event = event
        self.reason = reason


class InvalidFeedbackError(CoachingError, ValueError):
    """A feedback submission failed validation."""
    pass


class FeedbackWriteError(CoachingError):
    """Persisting feedback failed."""
    pass
