"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
Each one implements a store protocol from core.coaching.stores.
"""

from .clients import ClientRepository
from .feedback import FeedbackRepository, InteractionRepository
from .follow_ups import FollowUpRepository, NotificationRepository
from .sessions import SessionContextRepository, SessionRepository

__all__ = [
    "ClientRepository",
    "FeedbackRepository",
    "FollowUpRepository",
    "InteractionRepository",
    "NotificationRepository",
    "SessionContextRepository",
    "SessionRepository",
]
