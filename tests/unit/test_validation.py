"""
Tests for chat history sanitizing and repair, strategist output
validation, and turning stored rows into sessions.
"""

from datetime import datetime, timezone

from coaching_assistant.core.coaching.models import ChatMessage, MessageSender, SessionStatus
from coaching_assistant.core.coaching.stores import SessionRow
from coaching_assistant.core.coaching.validation import (
    parse_timestamp,
    repair_chat_history,
    sanitize_chat_history,
    session_from_row,
    validate_chat_message,
    validate_strategist_output,
)


CREATED = datetime(2025, 1, 1, tzinfo=timezone.utc)


def raw_message(id="1", content="hi", sender="user", timestamp="2024-01-01T00:00:00Z"):
    return {"id": id, "content": content, "sender": sender, "timestamp": timestamp}


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------

class TestSanitizeChatHistory:

    def test_drops_entry_with_empty_content_and_bad_timestamp(self):
        """
        Given one valid entry and one with empty content and timestamp "x"
        When the history is sanitized
        Then only the valid entry survives
        """
        history = [
            raw_message(),
            raw_message(id="2", content="", timestamp="x"),
        ]

        result = sanitize_chat_history(history)

        assert [m.id for m in result] == ["1"]
        assert result[0].sender is MessageSender.USER

    def test_preserves_order_of_valid_entries(self):
        history = [
            raw_message(id="a"),
            "garbage",
            raw_message(id="b", sender="ai"),
            raw_message(id="c", sender="assistant"),
            raw_message(id="d"),
        ]

        assert [m.id for m in sanitize_chat_history(history)] == ["a", "b", "d"]

    def test_every_drop_is_reported_and_processing_continues(self):
        """A bad entry never stops later entries from being checked."""
        drops = []
        history = [
            raw_message(id=""),
            {"id": "2"},
            raw_message(id="3", content="   "),
            raw_message(id="4"),
        ]

        result = sanitize_chat_history(history, on_drop=lambda i, entry, reason: drops.append((i, reason)))

        assert [m.id for m in result] == ["4"]
        assert drops == [(0, "missing id"), (1, "empty content"), (2, "empty content")]

    def test_non_list_history_is_empty(self):
        assert sanitize_chat_history({"id": "1"}) == []
        assert sanitize_chat_history(None) == []
        assert sanitize_chat_history("[]") == []

    def test_validity_predicate_matches_sanitizer(self):
        assert validate_chat_message(raw_message())
        assert not validate_chat_message(raw_message(timestamp="yesterday"))
        assert not validate_chat_message(raw_message(sender="system"))


class TestParseTimestamp:

    def test_zulu_suffix_is_utc(self):
        assert parse_timestamp("2024-01-01T00:00:00Z") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_naive_value_is_read_as_utc(self):
        assert parse_timestamp("2024-01-01T08:00:00").tzinfo is timezone.utc

    def test_garbage_is_none(self):
        assert parse_timestamp("x") is None
        assert parse_timestamp(1704067200) is None


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

class TestRepairChatHistory:

    def test_replaces_unparsable_timestamp_with_now(self):
        now = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
        messages = [ChatMessage("1", "hello", MessageSender.USER, "not-a-time")]

        repaired = repair_chat_history(messages, now=now)

        assert repaired[0].timestamp == now.isoformat()
        assert repaired[0].content == "hello"

    def test_removes_blank_messages(self):
        messages = [
            ChatMessage("1", "  ", MessageSender.USER, "2024-01-01T00:00:00Z"),
            ChatMessage("2", "kept", MessageSender.AI, "2024-01-01T00:00:00Z"),
        ]

        assert [m.id for m in repair_chat_history(messages)] == ["2"]

    def test_clean_history_is_unchanged(self):
        messages = [ChatMessage("1", "fine", MessageSender.USER, "2024-01-01T00:00:00Z")]

        assert repair_chat_history(messages) == messages


# ---------------------------------------------------------------------------
# Strategist Output
# ---------------------------------------------------------------------------

class TestValidateStrategistOutput:

    def test_keeps_well_formed_suggestions_only(self):
        output = validate_strategist_output({
            "analysis": "Overview",
            "suggestions": [
                {"title": "A", "description": "B", "why_it_works": "C"},
                {"title": "Missing why", "description": "B"},
                {"title": 1, "description": "B", "why_it_works": "C"},
                "not an object",
            ],
        })

        assert output.analysis == "Overview"
        assert [s.title for s in output.suggestions] == ["A"]

    def test_non_string_analysis_is_dropped(self):
        output = validate_strategist_output({
            "analysis": {"nested": True},
            "suggestions": [{"title": "A", "description": "B", "why_it_works": "C"}],
        })

        assert output.analysis is None
        assert len(output.suggestions) == 1

    def test_nothing_left_is_no_output(self):
        """An output that filters down to nothing is None, not an empty object."""
        assert validate_strategist_output({"analysis": 3, "suggestions": "many"}) is None
        assert validate_strategist_output({}) is None
        assert validate_strategist_output(["analysis"]) is None


# ---------------------------------------------------------------------------
# Rows to Sessions
# ---------------------------------------------------------------------------

class TestSessionFromRow:

    def make_row(self, **overrides):
        fields = dict(
            id="s1",
            target_id="t1",
            coach_id="c1",
            status="gathering_info",
            created_at=CREATED,
            raw_chat_history=[raw_message()],
        )
        fields.update(overrides)
        return SessionRow(**fields)

    def test_history_is_sanitized_on_load(self):
        row = self.make_row(raw_chat_history=[raw_message(), raw_message(id="2", content="")])

        session = session_from_row(row)

        assert [m.id for m in session.messages] == ["1"]

    def test_complete_row_keeps_valid_output(self):
        row = self.make_row(
            status="complete",
            raw_strategist_output={"analysis": "Done", "suggestions": []},
        )

        session = session_from_row(row)

        assert session.status is SessionStatus.COMPLETE
        assert session.strategist_output.analysis == "Done"

    def test_complete_row_without_output_loads_as_error(self):
        """A session can't be complete without strategist output."""
        session = session_from_row(self.make_row(status="complete", raw_strategist_output=None))

        assert session.status is SessionStatus.ERROR
        assert session.strategist_output is None

    def test_output_on_unfinished_session_is_discarded(self):
        row = self.make_row(raw_strategist_output={"analysis": "Stale"})

        assert session_from_row(row).strategist_output is None

    def test_unknown_status_loads_as_error(self):
        assert session_from_row(self.make_row(status="archived")).status is SessionStatus.ERROR

    def test_feedback_summary_is_rebuilt(self):
        row = self.make_row(
            feedback_rating=4,
            feedback_submitted_at=CREATED,
            feedback_data={"outcome_rating": 5, "suggestions_tried_count": 2},
        )

        feedback = session_from_row(row).feedback

        assert feedback.rating == 4
        assert feedback.outcome_rating == 5
        assert feedback.suggestions_tried_count == 2
        assert not feedback.has_detailed_feedback
