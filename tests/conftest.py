"""
Shared fixtures.

Tests run against the in-memory stores and a scripted provider, so nothing
here touches Claude, Snowflake or the billing service.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from coaching_assistant.core.coaching.errors import ProviderError
from coaching_assistant.core.coaching.models import (
    ChatMessage,
    Client,
    CoachingSession,
    MessageSender,
    SessionStatus,
)
from coaching_assistant.infrastructure.memory.stores import (
    MemoryClientStore,
    MemoryDatabase,
    MemorySessionContextStore,
    MemorySessionStore,
    row_from_session,
)


COACH_ID = "coach-1"
OTHER_COACH_ID = "coach-2"
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

VALID_STRATEGIST_OUTPUT = {
    "analysis": "They withdraw when conversations turn to plans.",
    "suggestions": [
        {
            "title": "Name the pattern",
            "description": "Point out the withdrawal gently.",
            "why_it_works": "It makes the dynamic discussable.",
        },
    ],
}


class ScriptedProvider:
    """
    A CoachingProvider that answers from canned values.

    Set `error` to make every call raise it, or `delay` to make the
    strategist hang for that many seconds.
    """

    def __init__(
        self,
        reply: str = "Tell me more about that.",
        strategist_output: Any = None,
        suggestions: Any = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ) -> None:
        self.reply = reply
        self.strategist_output = (
            VALID_STRATEGIST_OUTPUT if strategist_output is None else strategist_output
        )
        self.suggestions = [] if suggestions is None else suggestions
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def handle_user_message(self, session_id, message, target_name, history):
        self.calls.append(("message", {
            "session_id": session_id,
            "message": message,
            "target_name": target_name,
            "history": history,
        }))
        if self.error:
            raise self.error
        return ChatMessage.create(self.reply, MessageSender.AI)

    async def trigger_strategist(self, session_id, target_name, chat_history):
        self.calls.append(("strategist", {
            "session_id": session_id,
            "target_name": target_name,
            "chat_history": chat_history,
        }))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.strategist_output

    async def generate_suggestions(self, session_id, target_id, messages, message_count, last_ai_message):
        self.calls.append(("suggestions", {
            "session_id": session_id,
            "target_id": target_id,
            "messages": messages,
            "message_count": message_count,
            "last_ai_message": last_ai_message,
        }))
        if self.error:
            raise self.error
        return self.suggestions


@pytest.fixture
def db() -> MemoryDatabase:
    return MemoryDatabase()


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def failing_provider() -> ScriptedProvider:
    return ScriptedProvider(error=ProviderError("upstream unavailable"))


@pytest.fixture
def client(db: MemoryDatabase) -> Client:
    """A client named Alex belonging to COACH_ID."""
    alex = Client(id="client-1", name="Alex", coach_id=COACH_ID, created_at=NOW - timedelta(days=30))
    db.clients[alex.id] = alex
    return alex


@pytest.fixture
def make_session(db: MemoryDatabase, client: Client):
    """Store a session for `client` and return it."""

    def _make(
        message_count: int = 0,
        status: SessionStatus = SessionStatus.GATHERING_INFO,
        created_at: datetime = NOW,
        coach_id: str = COACH_ID,
    ) -> CoachingSession:
        session = CoachingSession(
            target_id=client.id,
            coach_id=coach_id,
            status=status,
            created_at=created_at,
        )
        for i in range(message_count):
            sender = MessageSender.USER if i % 2 == 0 else MessageSender.AI
            session.add_message(f"message {i}", sender, now=created_at)
        db.sessions[session.id] = row_from_session(session)
        return session

    return _make


@pytest.fixture
def session_store(db: MemoryDatabase) -> MemorySessionStore:
    return MemorySessionStore(db)


@pytest.fixture
def context_store(db: MemoryDatabase) -> MemorySessionContextStore:
    return MemorySessionContextStore(db)


@pytest.fixture
def client_store(db: MemoryDatabase) -> MemoryClientStore:
    return MemoryClientStore(db)
