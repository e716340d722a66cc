"""Tests for smart reply suggestions and interaction tracking."""

import asyncio

from conftest import ScriptedProvider

from coaching_assistant.core.coaching.errors import ProviderError
from coaching_assistant.core.coaching.models import ChatMessage, MessageSender, SuggestionPriority
from coaching_assistant.core.coaching.smart_suggestions import (
    SmartSuggestionOrchestrator,
    parse_smart_suggestions,
)
from coaching_assistant.infrastructure.memory.stores import MemoryInteractionStore


def conversation(count: int) -> list[ChatMessage]:
    return [
        ChatMessage.create(f"m{i}", MessageSender.USER if i % 2 == 0 else MessageSender.AI)
        for i in range(count)
    ]


class BrokenInteractionStore:

    async def insert_interaction(self, interaction):
        raise RuntimeError("warehouse suspended")

    async def set_effectiveness(self, coach_id, suggestion_id, was_effective):
        raise RuntimeError("warehouse suspended")


class TestParseSmartSuggestions:

    def test_keeps_entries_with_text_and_fills_defaults(self):
        result = parse_smart_suggestions([
            {"id": "x", "text": " Ask how they felt ", "priority": "high", "type": "specific_details"},
            {"text": "What happened next?", "priority": "urgent"},
            {"text": "   "},
            {"priority": "low"},
            "plain string",
        ])

        assert [s.text for s in result] == ["Ask how they felt", "What happened next?"]
        assert result[0].id == "x"
        assert result[0].priority is SuggestionPriority.HIGH
        assert result[1].priority is SuggestionPriority.MEDIUM
        assert result[1].type == "general"
        assert result[1].id

    def test_non_list_is_empty(self):
        assert parse_smart_suggestions({"text": "hi"}) == []


class TestRequestSuggestions:

    def test_hidden_panel_never_calls_provider(self, db):
        provider = ScriptedProvider(suggestions=[{"text": "hi"}])
        orchestrator = SmartSuggestionOrchestrator(provider, MemoryInteractionStore(db))

        result = asyncio.run(orchestrator.request_suggestions("s1", "t1", conversation(4), is_visible=False))

        assert result == []
        assert provider.calls == []

    def test_empty_conversation_never_calls_provider(self, db):
        provider = ScriptedProvider()
        orchestrator = SmartSuggestionOrchestrator(provider, MemoryInteractionStore(db))

        assert asyncio.run(orchestrator.request_suggestions("s1", "t1", [], is_visible=True)) == []
        assert provider.calls == []

    def test_sends_trailing_window_with_full_count(self):
        """
        Given a 14-message conversation and a window of 10
        When suggestions are requested
        Then the last 10 messages, the count 14 and the last AI message are sent
        """
        provider = ScriptedProvider(suggestions=[{"text": "Ask about timing"}])
        orchestrator = SmartSuggestionOrchestrator(provider, interactions=None, window=10)
        messages = conversation(14)

        result = asyncio.run(orchestrator.request_suggestions("s1", "t1", messages, is_visible=True))

        _, sent = provider.calls[0]
        assert sent["messages"] == messages[-10:]
        assert sent["message_count"] == 14
        assert sent["last_ai_message"] == "m13"
        assert [s.text for s in result] == ["Ask about timing"]

    def test_provider_failure_yields_empty_list(self):
        provider = ScriptedProvider(error=ProviderError("overloaded"))
        orchestrator = SmartSuggestionOrchestrator(provider, interactions=None)

        assert asyncio.run(orchestrator.request_suggestions("s1", "t1", conversation(2), True)) == []


class TestInteractions:

    def test_selection_is_recorded_with_context(self, db):
        orchestrator = SmartSuggestionOrchestrator(ScriptedProvider(), MemoryInteractionStore(db))

        interaction = asyncio.run(orchestrator.record_selection(
            suggestion_id="sg1",
            selected_text="Ask how they felt",
            session_id="s1",
            coach_id="c1",
            target_id="t1",
            message_count=6,
        ))

        stored = db.interactions[interaction.id]
        assert stored.follow_up_context == {
            "selected_text": "Ask how they felt",
            "message_count_at_selection": 6,
        }
        assert stored.was_effective is None

    def test_failed_write_is_swallowed(self):
        orchestrator = SmartSuggestionOrchestrator(ScriptedProvider(), BrokenInteractionStore())

        interaction = asyncio.run(orchestrator.record_selection("sg1", "text", "s1", "c1", "t1", 2))

        assert interaction is None
        assert asyncio.run(orchestrator.mark_effectiveness("c1", "sg1", True)) == 0

    def test_effectiveness_updates_every_matching_interaction(self, db):
        store = MemoryInteractionStore(db)
        orchestrator = SmartSuggestionOrchestrator(ScriptedProvider(), store)
        for _ in range(2):
            asyncio.run(orchestrator.record_selection("sg1", "text", "s1", "c1", "t1", 2))
        asyncio.run(orchestrator.record_selection("sg2", "other", "s1", "c1", "t1", 3))

        updated = asyncio.run(orchestrator.mark_effectiveness("c1", "sg1", True))

        assert updated == 2
        flags = {i.suggestion_id: i.was_effective for i in db.interactions.values()}
        assert flags == {"sg1": True, "sg2": None}

    def test_effectiveness_only_touches_the_coachs_own_interactions(self, db):
        """
        Given two coaches who picked the same suggestion
        When one of them marks it ineffective
        Then only that coach's interaction changes
        """
        orchestrator = SmartSuggestionOrchestrator(ScriptedProvider(), MemoryInteractionStore(db))
        mine = asyncio.run(orchestrator.record_selection("sg1", "text", "s1", "c1", "t1", 2))
        theirs = asyncio.run(orchestrator.record_selection("sg1", "text", "s2", "c2", "t2", 2))

        updated = asyncio.run(orchestrator.mark_effectiveness("c2", "sg1", False))

        assert updated == 1
        assert db.interactions[mine.id].was_effective is None
        assert db.interactions[theirs.id].was_effective is False
