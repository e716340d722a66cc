"""
Rule engine that turns session and feedback history into coaching advice.

Each rule is a pure function of the same snapshot: it looks at the
sessions, the feedback and the reference time, and returns at most one
suggestion. Rules are independent and always run in the order of RULES,
so the same inputs always give the same suggestions in the same order.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from .models import (
    FeedbackRecord,
    SessionActivity,
    SessionStatus,
    Suggestion,
    SuggestionCategory,
    SuggestionPriority,
)


logger = logging.getLogger(__name__)

MAX_SESSIONS = 10
MAX_FEEDBACK = 20

# The weekly rate divides the sampled sessions by this many weeks. It is not
# tied to the sessions' dates; see DESIGN.md for the open question.
SESSION_LOOKBACK_WEEKS = 4
TARGET_SESSIONS_PER_WEEK = 2
LOW_RATING_THRESHOLD = 3
FEEDBACK_RECENCY = timedelta(days=7)


@dataclass(frozen=True)
class HistorySnapshot:
    """The inputs every rule sees."""
    sessions: tuple[SessionActivity, ...]
    feedback: tuple[FeedbackRecord, ...]
    now: datetime

    @property
    def sessions_per_week(self) -> float:
        return len(self.sessions) / SESSION_LOOKBACK_WEEKS

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self.sessions if s.status is SessionStatus.COMPLETE)

    @property
    def incomplete_count(self) -> int:
        return len(self.sessions) - self.completed_count

    @property
    def low_rated_count(self) -> int:
        return sum(1 for f in self.feedback if f.rating < LOW_RATING_THRESHOLD)

    @property
    def has_recent_feedback(self) -> bool:
        cutoff = self.now - FEEDBACK_RECENCY
        return any(f.created_at > cutoff for f in self.feedback)


Rule = Callable[[HistorySnapshot], Optional[Suggestion]]


def frequency_rule(snapshot: HistorySnapshot) -> Optional[Suggestion]:
    rate = snapshot.sessions_per_week
    if rate >= TARGET_SESSIONS_PER_WEEK:
        return None
    return Suggestion(
        id="timing-consistency",
        title="Increase Session Frequency",
        description=(
            "Regular coaching sessions lead to better outcomes. "
            "Consider scheduling 2-3 sessions per week."
        ),
        category=SuggestionCategory.TIMING,
        priority=SuggestionPriority.HIGH,
        rationale=(
            f"You average {rate:.1f} sessions per week, below the "
            f"{TARGET_SESSIONS_PER_WEEK} that consistent progress needs."
        ),
        action_items=(
            "Schedule recurring coaching sessions",
            "Set reminders for regular practice",
            "Block time in your calendar for coaching",
        ),
    )


def quality_rule(snapshot: HistorySnapshot) -> Optional[Suggestion]:
    low_rated = snapshot.low_rated_count
    if low_rated <= 2:
        return None
    return Suggestion(
        id="approach-refinement",
        title="Refine Communication Approach",
        description=(
            "Some recent feedback suggests room for improvement. "
            "Let's adjust your communication strategy."
        ),
        category=SuggestionCategory.APPROACH,
        priority=SuggestionPriority.HIGH,
        rationale=(
            f"{low_rated} recent feedback submissions rated the session below "
            f"{LOW_RATING_THRESHOLD} stars."
        ),
        action_items=(
            "Review recent session feedback",
            "Try different communication styles",
            "Focus on active listening techniques",
        ),
    )


def completion_rule(snapshot: HistorySnapshot) -> Optional[Suggestion]:
    incomplete = snapshot.incomplete_count
    if incomplete <= 3:
        return None
    return Suggestion(
        id="technique-completion",
        title="Improve Session Completion Rate",
        description=(
            "Several sessions remain incomplete. "
            "Let's work on strategies to see conversations through."
        ),
        category=SuggestionCategory.TECHNIQUE,
        priority=SuggestionPriority.MEDIUM,
        rationale=(
            f"{incomplete} of your last {len(snapshot.sessions)} sessions never reached "
            "a completed analysis."
        ),
        action_items=(
            "Set clear session objectives",
            "Use time management techniques",
            "Practice conversation closure skills",
        ),
    )


def feedback_recency_rule(snapshot: HistorySnapshot) -> Optional[Suggestion]:
    if snapshot.has_recent_feedback or not snapshot.sessions:
        return None
    return Suggestion(
        id="follow-up-feedback",
        title="Collect Recent Feedback",
        description=(
            "Gathering feedback helps improve future sessions. "
            "Consider reaching out for recent session feedback."
        ),
        category=SuggestionCategory.FOLLOW_UP,
        priority=SuggestionPriority.MEDIUM,
        rationale=(
            f"No feedback in the last {FEEDBACK_RECENCY.days} days despite "
            f"{len(snapshot.sessions)} recent sessions."
        ),
        action_items=(
            "Send follow-up messages after sessions",
            "Create feedback collection templates",
            "Schedule feedback review meetings",
        ),
    )


def mastery_rule(snapshot: HistorySnapshot) -> Optional[Suggestion]:
    completed = snapshot.completed_count
    if completed <= 5:
        return None
    return Suggestion(
        id="technique-advanced",
        title="Explore Advanced Techniques",
        description=(
            "Your completion rate is excellent! "
            "Ready to try more advanced coaching approaches."
        ),
        category=SuggestionCategory.TECHNIQUE,
        priority=SuggestionPriority.LOW,
        rationale=(
            f"{completed} completed sessions show you're ready for advanced coaching methods."
        ),
        action_items=(
            "Try advanced questioning techniques",
            "Implement solution-focused approaches",
            "Explore coaching frameworks like the GROW model",
        ),
    )


RULES: tuple[Rule, ...] = (
    frequency_rule,
    quality_rule,
    completion_rule,
    feedback_recency_rule,
    mastery_rule,
)


def generate_suggestions(
    sessions: Sequence[SessionActivity],
    feedback: Sequence[FeedbackRecord],
    now: datetime,
) -> list[Suggestion]:
    """
    Run every rule over the history and collect what fires.

    Both sequences must be most recent first; only the first 10 sessions
    and 20 feedback records are considered.
    """
    snapshot = HistorySnapshot(
        sessions=tuple(sessions[:MAX_SESSIONS]),
        feedback=tuple(feedback[:MAX_FEEDBACK]),
        now=now,
    )
    suggestions = []
    for rule in RULES:
        suggestion = rule(snapshot)
        if suggestion is not None:
            suggestions.append(suggestion)
    return suggestions


@dataclass
class SuggestionTracker:
    """
    Which suggestions a coach has acted on in the current session.

    Applying is an acknowledgement only: the suggestion stays in the
    generated set and the application is logged for analytics.
    """
    coach_id: str
    session_id: Optional[str] = None
    applied: set[str] = field(default_factory=set)

    def apply(self, suggestion_id: str) -> None:
        self.applied.add(suggestion_id)
        logger.info(
            "Suggestion applied",
            extra={
                "suggestion_id": suggestion_id,
                "coach_id": self.coach_id,
                "session_id": self.session_id,
            }
        )

    def is_applied(self, suggestion_id: str) -> bool:
        return suggestion_id in self.applied
