"""
Interface to the remote coaching model.

The core never talks to a model SDK directly. Whatever answers the coach's
messages, writes the strategist analysis and proposes smart replies sits
behind CoachingProvider, so tests can hand in a scripted fake and the
Anthropic implementation stays in infrastructure.
"""

from typing import Any, Optional, Protocol

from .models import ChatMessage


class CoachingProvider(Protocol):
    """
    The three remote operations a coaching session needs.

    Implementations raise ProviderError for anything that went wrong on
    the remote side. Raw return values are not trusted: callers validate
    strategist output and suggestion lists before using them.
    """

    async def handle_user_message(
        self,
        session_id: str,
        message: str,
        target_name: str,
        history: list[ChatMessage],
    ) -> ChatMessage:
        """Return the AI reply to `message`, given the prior history."""
        ...

    async def trigger_strategist(
        self,
        session_id: str,
        target_name: str,
        chat_history: list[ChatMessage],
    ) -> Any:
        """Return the raw strategist output for the whole conversation."""
        ...

    async def generate_suggestions(
        self,
        session_id: str,
        target_id: str,
        messages: list[ChatMessage],
        message_count: int,
        last_ai_message: Optional[str],
    ) -> list[Any]:
        """Return raw smart suggestion entries."""
        ...
