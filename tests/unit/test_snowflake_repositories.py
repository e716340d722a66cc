"""
Tests for the Snowflake repositories.

A fake connection records every statement and hands back canned rows, so
these check the translation between rows and domain objects without a
database.
"""

import asyncio
import json
import time
from datetime import datetime, timezone

import pytest

from coaching_assistant.core.coaching.errors import SessionLoadTimeout
from coaching_assistant.core.coaching.loading import SessionLoader
from coaching_assistant.core.coaching.models import (
    CoachingSession,
    FeedbackRecord,
    FeedbackSummary,
    MessageSender,
    SessionContext,
    SessionStatus,
)
from coaching_assistant.infrastructure.snowflake.repositories import (
    ClientRepository,
    FeedbackRepository,
    FollowUpRepository,
    InteractionRepository,
    NotificationRepository,
    SessionContextRepository,
    SessionRepository,
)
from coaching_assistant.infrastructure.snowflake.repositories.base import (
    as_utc,
    parse_variant_json,
    to_variant_param,
)


CREATED = datetime(2025, 2, 1, 9, 30, tzinfo=timezone.utc)


class FakeCursor:

    def __init__(self, conn):
        self._conn = conn
        self.rowcount = conn.rowcount

    def execute(self, query, params=()):
        if self._conn.delay:
            time.sleep(self._conn.delay)
        if self._conn.fail_with:
            raise self._conn.fail_with
        self._conn.executed.append((" ".join(query.split()), params))

    def fetchall(self):
        return self._conn.rows

    def fetchone(self):
        return self._conn.rows[0] if self._conn.rows else None

    def close(self):
        self._conn.closed_cursors += 1


class FakeConnection:

    def __init__(self, rows=None, rowcount=1, fail_with=None, delay=0.0):
        self.rows = rows or []
        self.delay = delay
        self.rowcount = rowcount
        self.fail_with = fail_with
        self.executed = []
        self.commits = 0
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1


def session_row(**overrides):
    values = {
        "id": "s1",
        "target_id": "t1",
        "user_id": "c1",
        "status": "complete",
        "created_at": datetime(2025, 2, 1, 9, 30),
        "raw_chat_history": json.dumps([{"id": "m1", "content": "hi", "sender": "user",
                                         "timestamp": "2025-02-01T09:30:00Z"}]),
        "strategist_output": json.dumps({"analysis": "ok", "suggestions": []}),
        "case_file_data": None,
        "parent_session_id": None,
        "is_continued": False,
        "feedback_rating": None,
        "feedback_submitted_at": None,
        "feedback_data": None,
    }
    values.update(overrides)
    return tuple(values.values())


# ---------------------------------------------------------------------------
# VARIANT helpers
# ---------------------------------------------------------------------------

class TestVariantHelpers:

    def test_parse_variant_accepts_text_and_objects(self):
        assert parse_variant_json('{"a": 1}') == {"a": 1}
        assert parse_variant_json([1, 2]) == [1, 2]
        assert parse_variant_json("") is None
        assert parse_variant_json("{broken") is None

    def test_variant_param_keeps_null(self):
        assert to_variant_param(None) is None
        assert to_variant_param({"a": [1]}) == '{"a": [1]}'

    def test_naive_timestamps_are_utc(self):
        assert as_utc(datetime(2025, 1, 1)).tzinfo == timezone.utc
        assert as_utc("2025-01-01T00:00:00Z") == datetime(2025, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class TestSessionRepository:

    def test_fetch_returns_raw_row(self):
        conn = FakeConnection(rows=[session_row()])

        row = asyncio.run(SessionRepository(conn).fetch_session("s1"))

        assert row.coach_id == "c1"
        assert row.created_at == CREATED
        assert row.raw_chat_history[0]["id"] == "m1"
        assert row.raw_strategist_output == {"analysis": "ok", "suggestions": []}
        assert conn.executed[0][1] == ("s1",)

    def test_fetch_missing_is_none(self):
        assert asyncio.run(SessionRepository(FakeConnection()).fetch_session("nope")) is None

    def test_feedback_columns_are_read(self):
        conn = FakeConnection(rows=[session_row(
            feedback_rating=5,
            feedback_submitted_at=CREATED,
            feedback_data='{"outcome_rating": 4}',
        )])

        row = asyncio.run(SessionRepository(conn).fetch_session("s1"))

        assert row.feedback_rating == 5
        assert row.feedback_data == {"outcome_rating": 4}

    def test_save_serializes_history_and_commits(self):
        conn = FakeConnection()
        session = CoachingSession(id="s1", target_id="t1", coach_id="c1")
        session.add_message("hello", MessageSender.USER)

        asyncio.run(SessionRepository(conn).save_session(session))

        query, params = conn.executed[0]
        assert query.startswith("UPDATE coaching_sessions SET")
        assert params[0] == "gathering_info"
        assert json.loads(params[1])[0]["content"] == "hello"
        assert params[2] is None
        assert params[-1] == "s1"
        assert conn.commits == 1

    def test_list_activity_filters_statuses_and_limits(self):
        conn = FakeConnection(rows=[("s1", "t1", "Alex", "analyzing", CREATED, 4)])

        activity = asyncio.run(SessionRepository(conn).list_activity(
            "c1", statuses=[SessionStatus.COMPLETE, SessionStatus.ANALYZING], limit=10,
        ))

        query, params = conn.executed[0]
        assert "s.status IN (%s, %s)" in query
        assert params == ("c1", "complete", "analyzing", 10)
        assert activity[0].status is SessionStatus.ANALYZING
        assert activity[0].raw_message_count == 4
        assert activity[0].target_name == "Alex"

    def test_list_for_client_excludes_session(self):
        conn = FakeConnection(rows=[session_row(id="s0")])

        rows = asyncio.run(SessionRepository(conn).list_for_client("c1", "t1", exclude_session_id="s9", limit=3))

        query, params = conn.executed[0]
        assert "id <> %s" in query
        assert params == ("c1", "t1", "s9", 3)
        assert rows[0].id == "s0"

    def test_feedback_summary_update(self):
        conn = FakeConnection()
        summary = FeedbackSummary(rating=4, submitted_at=CREATED, suggestions_tried_count=2)

        asyncio.run(SessionRepository(conn).update_feedback_summary("s1", summary))

        _, params = conn.executed[0]
        assert params[0] == 4
        assert json.loads(params[2])["suggestions_tried_count"] == 2
        assert params[3] == "s1"

    def test_write_failure_propagates_and_closes_cursor(self):
        conn = FakeConnection(fail_with=RuntimeError("warehouse suspended"))

        with pytest.raises(RuntimeError):
            asyncio.run(SessionRepository(conn).save_session(CoachingSession(id="s1")))

        assert conn.commits == 0
        assert conn.closed_cursors == 1


class TestSessionContextRepository:

    def test_upsert_uses_merge(self):
        conn = FakeConnection()
        context = SessionContext(session_id="s1", relationship_type="partner", goals=["Listen"])

        asyncio.run(SessionContextRepository(conn).upsert_context(context))

        query, params = conn.executed[0]
        assert query.startswith("MERGE INTO session_contexts")
        assert params[0] == "s1"
        assert json.loads(params[4]) == ["Listen"]

    def test_fetch_tolerates_bad_variants(self):
        conn = FakeConnection(rows=[("s1", "partner", None, None, '{"not": "a list"}', None, None, CREATED)])

        context = asyncio.run(SessionContextRepository(conn).fetch_context("s1"))

        assert context.goals == []
        assert context.challenges == []
        assert context.context_data == {}


# ---------------------------------------------------------------------------
# Clients, Feedback, Interactions, Notifications
# ---------------------------------------------------------------------------

class TestClientRepository:

    def test_rows_without_name_are_skipped(self):
        conn = FakeConnection(rows=[
            ("t1", "Alex", "c1", CREATED, True),
            ("t2", "", "c1", CREATED, False),
        ])

        clients = asyncio.run(ClientRepository(conn).list_clients("c1"))

        assert [c.name for c in clients] == ["Alex"]
        assert clients[0].is_favorite


class TestFeedbackRepository:

    def test_insert_stores_strategies_as_variant(self):
        conn = FakeConnection()
        record = FeedbackRecord(
            id="f1", coach_id="c1", session_id="s1", target_id="t1",
            rating=4, created_at=CREATED, suggestions_tried=("Pause",),
        )

        asyncio.run(FeedbackRepository(conn).insert_feedback(record))

        _, params = conn.executed[0]
        assert params[5] == '["Pause"]'

    def test_list_applies_client_filter_and_limit(self):
        conn = FakeConnection(rows=[
            ("f1", "c1", "s1", "t1", 5, CREATED, '["Pause", 3]', 4, "Calm", None, None),
        ])

        records = asyncio.run(FeedbackRepository(conn).list_feedback("c1", target_id="t1", limit=20))

        query, params = conn.executed[0]
        assert "AND target_id = %s" in query
        assert params == ("c1", "t1", 20)
        assert records[0].suggestions_tried == ("Pause",)
        assert records[0].outcome_rating == 4


class TestInteractionRepository:

    def test_effectiveness_is_scoped_to_coach_and_returns_rowcount(self):
        conn = FakeConnection(rowcount=3)

        updated = asyncio.run(InteractionRepository(conn).set_effectiveness("c1", "sg1", True))

        query, params = conn.executed[0]
        assert updated == 3
        assert "user_id = %s" in query
        assert params == (True, "sg1", "c1")


class TestNotificationRepository:

    def test_mark_read_is_scoped_to_coach(self):
        conn = FakeConnection()

        asyncio.run(NotificationRepository(conn).mark_read("c1", "n1"))

        query, params = conn.executed[0]
        assert "user_id = %s" in query
        assert params == ("n1", "c1")


class TestFollowUpRepository:

    def test_fetch_trigger_by_id(self):
        conn = FakeConnection(rows=[
            ("f1", "s1", "t1", "check_in", "How did it go?", '{"topic": "chores"}', False, CREATED, None),
        ])

        trigger = asyncio.run(FollowUpRepository(conn).fetch_trigger("f1"))

        assert conn.executed[0][1] == ("f1",)
        assert trigger.target_id == "t1"
        assert trigger.context_reference == {"topic": "chores"}
        assert not trigger.is_triggered

    def test_fetch_missing_trigger_is_none(self):
        assert asyncio.run(FollowUpRepository(FakeConnection()).fetch_trigger("nope")) is None


# ---------------------------------------------------------------------------
# Blocking queries
# ---------------------------------------------------------------------------

class TestBlockingQueries:

    def test_load_deadline_fires_while_query_blocks(self):
        """
        Given a connection whose queries block for half a second
        When a session is loaded with a 0.1s deadline
        Then the load times out at the deadline instead of waiting for the query
        """
        conn = FakeConnection(rows=[session_row()], delay=0.5)
        loader = SessionLoader(SessionRepository(conn), timeout_seconds=0.1)

        async def timed_load():
            started = time.perf_counter()
            with pytest.raises(SessionLoadTimeout):
                await loader.load("c1", "s1")
            return time.perf_counter() - started

        elapsed = asyncio.run(timed_load())

        assert elapsed < 0.4

    def test_event_loop_keeps_running_during_a_query(self):
        conn = FakeConnection(rows=[session_row()], delay=0.2)
        ticks = []

        async def ticker():
            for _ in range(5):
                ticks.append(time.perf_counter())
                await asyncio.sleep(0.01)

        async def run_both():
            await asyncio.gather(SessionRepository(conn).fetch_session("s1"), ticker())

        asyncio.run(run_both())

        assert len(ticks) == 5
        assert ticks[-1] - ticks[0] < 0.15
