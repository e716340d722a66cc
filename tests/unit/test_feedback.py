"""Tests for feedback submission and analytics."""

import asyncio
from datetime import timedelta

import pytest
from conftest import COACH_ID, NOW, OTHER_COACH_ID

from coaching_assistant.core.coaching.errors import FeedbackWriteError, SessionAccessError
from coaching_assistant.core.coaching.feedback import FeedbackAggregator, summarize
from coaching_assistant.core.coaching.models import FeedbackRecord, FeedbackSubmission
from coaching_assistant.infrastructure.memory.stores import MemoryFeedbackStore


class FailingFeedbackStore:

    async def insert_feedback(self, record):
        raise RuntimeError("insert failed")

    async def list_feedback(self, coach_id, target_id=None, limit=None):
        return []


class RecordingSessionStore:
    """Wraps a session store and notes feedback summary writes."""

    def __init__(self, inner, fail_summary: bool = False):
        self._inner = inner
        self.fail_summary = fail_summary
        self.summary_writes = []

    async def fetch_session(self, session_id):
        return await self._inner.fetch_session(session_id)

    async def update_feedback_summary(self, session_id, summary):
        self.summary_writes.append(session_id)
        if self.fail_summary:
            raise RuntimeError("update failed")
        await self._inner.update_feedback_summary(session_id, summary)


def record(rating, outcome=None, tried=(), worked=None, didnt=None, id="f"):
    return FeedbackRecord(
        id=id,
        coach_id=COACH_ID,
        session_id="s1",
        target_id="t1",
        rating=rating,
        created_at=NOW,
        suggestions_tried=tuple(tried),
        outcome_rating=outcome,
        what_worked_well=worked,
        what_didnt_work=didnt,
    )


def submission_for(session, **overrides) -> FeedbackSubmission:
    fields = dict(
        session_id=session.id,
        target_id=session.target_id,
        rating=4,
        suggestions_tried_count=1,
        outcome_rating=5,
        what_worked_well="Naming the pattern helped",
        suggested_strategies=["Name the pattern", "Take a pause"],
    )
    fields.update(overrides)
    return FeedbackSubmission(**fields)


class TestSubmit:

    def test_writes_record_then_summary(self, db, session_store, make_session):
        session = make_session(message_count=4)
        aggregator = FeedbackAggregator(MemoryFeedbackStore(db), session_store)

        stored = asyncio.run(aggregator.submit(COACH_ID, submission_for(session), now=NOW))

        assert db.feedback[stored.id].suggestions_tried == ("Name the pattern",)
        row = db.sessions[session.id]
        assert row.feedback_rating == 4
        assert row.feedback_submitted_at == NOW
        assert row.feedback_data == {
            "outcome_rating": 5,
            "suggestions_tried_count": 1,
            "has_detailed_feedback": True,
        }

    def test_failed_record_insert_skips_summary(self, session_store, make_session):
        """
        Given the detail insert fails
        When feedback is submitted
        Then the session summary is never written
        """
        session = make_session()
        sessions = RecordingSessionStore(session_store)
        aggregator = FeedbackAggregator(FailingFeedbackStore(), sessions)

        with pytest.raises(FeedbackWriteError, match="Failed to save feedback"):
            asyncio.run(aggregator.submit(COACH_ID, submission_for(session)))

        assert sessions.summary_writes == []

    def test_failed_summary_keeps_record(self, db, session_store, make_session):
        session = make_session()
        sessions = RecordingSessionStore(session_store, fail_summary=True)
        aggregator = FeedbackAggregator(MemoryFeedbackStore(db), sessions)

        with pytest.raises(FeedbackWriteError, match="session summary"):
            asyncio.run(aggregator.submit(COACH_ID, submission_for(session)))

        assert len(db.feedback) == 1

    def test_other_coaches_session_is_rejected(self, db, session_store, make_session):
        session = make_session(coach_id=OTHER_COACH_ID)
        aggregator = FeedbackAggregator(MemoryFeedbackStore(db), session_store)

        with pytest.raises(SessionAccessError):
            asyncio.run(aggregator.submit(COACH_ID, submission_for(session)))

        assert db.feedback == {}


class TestAnalytics:

    def test_no_feedback_gives_empty_analytics(self):
        analytics = summarize([])

        assert analytics.total_feedbacks == 0
        assert analytics.average_rating == 0.0
        assert analytics.strategies == {}

    def test_strategy_success_rate_counts_good_outcomes(self):
        analytics = summarize([
            record(5, outcome=4, tried=["Pause"], id="a"),
            record(3, outcome=2, tried=["Pause", "Listen"], id="b"),
            record(4, outcome=None, tried=["Listen"], id="c"),
        ])

        assert analytics.average_rating == 4.0
        assert analytics.total_feedbacks == 3
        assert analytics.strategies["Pause"].tried_count == 2
        assert analytics.strategies["Pause"].success_rate == 50.0
        assert analytics.strategies["Listen"].success_rate == 0.0

    def test_themes_are_long_words_capped_at_five(self):
        analytics = summarize([
            record(4, worked="Listening calmly helped a lot", id="a"),
            record(4, worked="Patience and gentle questions worked", id="b"),
        ])

        assert analytics.what_works == ["listening", "calmly", "helped", "patience", "gentle"]
        assert analytics.what_doesnt == []

    def test_history_filters_by_client(self, db, session_store):
        store = MemoryFeedbackStore(db)
        for i, target in enumerate(["t1", "t2", "t1"]):
            asyncio.run(store.insert_feedback(FeedbackRecord(
                id=f"f{i}",
                coach_id=COACH_ID,
                session_id="s",
                target_id=target,
                rating=3,
                created_at=NOW - timedelta(days=i),
            )))
        aggregator = FeedbackAggregator(store, session_store)

        history = asyncio.run(aggregator.history(COACH_ID, target_id="t1"))

        assert [r.id for r in history] == ["f0", "f2"]
