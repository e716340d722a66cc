"""
Post-session feedback: submission, history and analytics.

A submission is written in two steps, detail record first and session
summary second. The order matters: a summary without its detail record
would show a rating nobody can drill into, so a failed detail insert
stops the submission before the summary is touched. There is no
transaction across the two writes; a failed summary write after a
successful detail insert is reported but not undone.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from .errors import FeedbackWriteError, SessionAccessError
from .models import (
    FeedbackRecord,
    FeedbackSubmission,
    FeedbackSummary,
    new_id,
    utcnow,
)
from .stores import FeedbackStore, SessionStore


logger = logging.getLogger(__name__)

SUCCESS_OUTCOME_RATING = 4
THEME_MIN_WORD_LENGTH = 5
THEME_LIMIT = 5


@dataclass
class StrategyEffectiveness:
    tried_count: int = 0
    success_count: int = 0

    @property
    def success_rate(self) -> float:
        """Percentage of tries whose outcome was rated 4 or better."""
        if self.tried_count == 0:
            return 0.0
        return self.success_count / self.tried_count * 100


@dataclass
class FeedbackAnalytics:
    average_rating: float = 0.0
    total_feedbacks: int = 0
    strategies: dict[str, StrategyEffectiveness] = field(default_factory=dict)
    what_works: list[str] = field(default_factory=list)
    what_doesnt: list[str] = field(default_factory=list)


def _themes(texts: Sequence[Optional[str]]) -> list[str]:
    words = " ".join(t for t in texts if t).lower().split()
    return [w for w in words if len(w) >= THEME_MIN_WORD_LENGTH][:THEME_LIMIT]


def summarize(records: Sequence[FeedbackRecord]) -> FeedbackAnalytics:
    """Aggregate feedback records into ratings, strategy success and themes."""
    if not records:
        return FeedbackAnalytics()

    strategies: dict[str, StrategyEffectiveness] = {}
    for record in records:
        succeeded = (
            record.outcome_rating is not None
            and record.outcome_rating >= SUCCESS_OUTCOME_RATING
        )
        for strategy in record.suggestions_tried:
            stats = strategies.setdefault(strategy, StrategyEffectiveness())
            stats.tried_count += 1
            if succeeded:
                stats.success_count += 1

    return FeedbackAnalytics(
        average_rating=sum(r.rating for r in records) / len(records),
        total_feedbacks=len(records),
        strategies=strategies,
        what_works=_themes([r.what_worked_well for r in records]),
        what_doesnt=_themes([r.what_didnt_work for r in records]),
    )


class FeedbackAggregator:
    """Writes feedback submissions and reads them back."""

    def __init__(self, feedback: FeedbackStore, sessions: SessionStore) -> None:
        self._feedback = feedback
        self._sessions = sessions

    async def submit(
        self,
        coach_id: str,
        submission: FeedbackSubmission,
        now: Optional[datetime] = None,
    ) -> FeedbackRecord:
        """
        Store a feedback submission and update the session summary.

        Raises:
            SessionAccessError: the session is missing or not the coach's
            FeedbackWriteError: either write failed
        """
        row = await self._sessions.fetch_session(submission.session_id)
        if row is None or row.coach_id != coach_id:
            raise SessionAccessError(submission.session_id)

        submitted_at = now or utcnow()
        record = FeedbackRecord(
            id=new_id(),
            coach_id=coach_id,
            session_id=submission.session_id,
            target_id=submission.target_id,
            rating=submission.rating,
            created_at=submitted_at,
            suggestions_tried=tuple(submission.suggestions_tried),
            outcome_rating=submission.outcome_rating,
            what_worked_well=submission.what_worked_well or None,
            what_didnt_work=submission.what_didnt_work or None,
            additional_notes=submission.additional_notes or None,
        )

        try:
            await self._feedback.insert_feedback(record)
        except Exception as e:
            logger.error(
                "Failed to insert feedback record",
                extra={"session_id": submission.session_id, "error": str(e)}
            )
            raise FeedbackWriteError(f"Failed to save feedback: {e}") from e

        summary = FeedbackSummary(
            rating=submission.rating,
            submitted_at=submitted_at,
            outcome_rating=submission.outcome_rating,
            suggestions_tried_count=submission.suggestions_tried_count,
            has_detailed_feedback=submission.has_detailed_feedback,
        )
        try:
            await self._sessions.update_feedback_summary(submission.session_id, summary)
        except Exception as e:
            logger.error(
                "Failed to update session feedback summary",
                extra={
                    "session_id": submission.session_id,
                    "feedback_id": record.id,
                    "error": str(e),
                }
            )
            raise FeedbackWriteError(f"Failed to update session summary: {e}") from e

        logger.info(
            "Feedback submitted",
            extra={
                "session_id": submission.session_id,
                "rating": submission.rating,
                "suggestions_tried": len(record.suggestions_tried),
            }
        )
        return record

    async def history(self, coach_id: str, target_id: Optional[str] = None) -> list[FeedbackRecord]:
        """The coach's feedback, most recent first, optionally for one client."""
        return await self._feedback.list_feedback(coach_id, target_id=target_id)

    async def analytics(self, coach_id: str, target_id: Optional[str] = None) -> FeedbackAnalytics:
        return summarize(await self.history(coach_id, target_id))
