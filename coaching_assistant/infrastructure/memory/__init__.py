"""In-memory stores for mock mode and tests."""

from .stores import (
    MemoryClientStore,
    MemoryDatabase,
    MemoryFeedbackStore,
    MemoryFollowUpStore,
    MemoryInteractionStore,
    MemoryNotificationStore,
    MemorySessionContextStore,
    MemorySessionStore,
    row_from_session,
)

__all__ = [
    "MemoryClientStore",
    "MemoryDatabase",
    "MemoryFeedbackStore",
    "MemoryFollowUpStore",
    "MemoryInteractionStore",
    "MemoryNotificationStore",
    "MemorySessionContextStore",
    "MemorySessionStore",
    "row_from_session",
]
