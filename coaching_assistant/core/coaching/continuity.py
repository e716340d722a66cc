"""
Continuation eligibility: which past sessions a coach can pick back up.

The rules are evaluated in order and the first match wins:

1. complete, and no older than 7 days
2. analyzing, and no older than 2 days
3. more than 3 stored messages, and no older than 14 days

Anything else is left out of the result entirely. Age is whole days since
the session was created, rounded down.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from .models import ContinuableSession, SessionActivity, SessionStatus


logger = logging.getLogger(__name__)

# Statuses worth offering for continuation; the analyzer only looks at these
CONTINUABLE_STATUSES = (SessionStatus.COMPLETE, SessionStatus.ANALYZING)
MAX_CANDIDATES = 10

REASON_RECENT_COMPLETE = "Recent completed session - follow up available"
REASON_IN_PROGRESS = "Session in progress - continue analysis"
REASON_GOOD_FOUNDATION = "Good conversation foundation - build upon it"


@dataclass(frozen=True)
class ContinuationRule:
    status: Optional[SessionStatus]
    max_days: int
    reason: str
    min_messages_exclusive: Optional[int] = None

    def matches(self, status: SessionStatus, days: int, message_count: int) -> bool:
        if self.status is not None and status is not self.status:
            return False
        if self.min_messages_exclusive is not None and message_count <= self.min_messages_exclusive:
            return False
        return days <= self.max_days


RULES = (
    ContinuationRule(SessionStatus.COMPLETE, 7, REASON_RECENT_COMPLETE),
    ContinuationRule(SessionStatus.ANALYZING, 2, REASON_IN_PROGRESS),
    ContinuationRule(None, 14, REASON_GOOD_FOUNDATION, min_messages_exclusive=3),
)


def days_since(created_at: datetime, now: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return math.floor((now - created_at) / timedelta(days=1))


def continuation_reason(
    status: SessionStatus,
    created_at: datetime,
    message_count: int,
    now: datetime,
) -> Optional[str]:
    """The reason a session can be continued, or None if it can't."""
    days = days_since(created_at, now)
    for rule in RULES:
        if rule.matches(status, days, message_count):
            return rule.reason
    return None


def find_continuable_sessions(
    sessions: Iterable[SessionActivity],
    now: datetime,
) -> list[ContinuableSession]:
    """
    Evaluate up to the 10 most recent candidate sessions.

    `sessions` must be most recent first. Sessions in other statuses are
    skipped before the cap is applied, so the cap counts candidates only.
    """
    candidates = [s for s in sessions if s.status in CONTINUABLE_STATUSES][:MAX_CANDIDATES]

    result = []
    for activity in candidates:
        reason = continuation_reason(
            activity.status,
            activity.created_at,
            activity.raw_message_count,
            now,
        )
        if reason is None:
            continue
        result.append(ContinuableSession(
            id=activity.session_id,
            target_name=activity.target_name,
            target_id=activity.target_id,
            last_activity=activity.created_at,
            message_count=activity.raw_message_count,
            status=activity.status,
            can_continue=True,
            continuation_reason=reason,
        ))

    logger.debug(
        "Evaluated continuable sessions",
        extra={"candidates": len(candidates), "eligible": len(result)}
    )
    return result
