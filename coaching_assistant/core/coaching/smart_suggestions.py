"""
In-conversation reply suggestions.

Smart suggestions are a nice-to-have on top of the chat. Nothing here is
allowed to break the conversation: provider failures come back as an
empty list and failed interaction writes are logged and dropped.
"""

import logging
from typing import Any, Optional

from .errors import ProviderError
from .models import (
    ChatMessage,
    MessageSender,
    SmartSuggestion,
    SuggestionInteraction,
    SuggestionPriority,
    new_id,
)
from .provider import CoachingProvider
from .stores import InteractionStore


logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 10


def parse_smart_suggestions(raw: Any) -> list[SmartSuggestion]:
    """Keep the provider entries that carry usable text."""
    if not isinstance(raw, list):
        return []

    suggestions = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        text = entry.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        try:
            priority = SuggestionPriority(entry.get("priority"))
        except ValueError:
            priority = SuggestionPriority.MEDIUM
        suggestion_type = entry.get("type")
        suggestions.append(SmartSuggestion(
            id=str(entry.get("id") or new_id()),
            text=text.strip(),
            priority=priority,
            type=suggestion_type if isinstance(suggestion_type, str) else "general",
        ))
    return suggestions


class SmartSuggestionOrchestrator:
    """Requests smart suggestions and records what the coach picks."""

    def __init__(
        self,
        provider: CoachingProvider,
        interactions: InteractionStore,
        window: int = DEFAULT_WINDOW,
    ) -> None:
        self._provider = provider
        self._interactions = interactions
        self._window = window

    async def request_suggestions(
        self,
        session_id: str,
        target_id: str,
        messages: list[ChatMessage],
        is_visible: bool,
    ) -> list[SmartSuggestion]:
        """
        Ask the provider for suggestions about the current conversation.

        Hidden panels and empty conversations never reach the provider.
        Only the trailing window of messages is sent, together with the
        full count and the latest AI message.
        """
        if not is_visible or not messages:
            return []

        last_ai = next(
            (m.content for m in reversed(messages) if m.sender is MessageSender.AI),
            None,
        )

        try:
            raw = await self._provider.generate_suggestions(
                session_id=session_id,
                target_id=target_id,
                messages=messages[-self._window:],
                message_count=len(messages),
                last_ai_message=last_ai,
            )
        except ProviderError as e:
            logger.error(
                "Smart suggestion request failed",
                extra={"session_id": session_id, "error": str(e)}
            )
            return []

        return parse_smart_suggestions(raw)

    async def record_selection(
        self,
        suggestion_id: str,
        selected_text: str,
        session_id: str,
        coach_id: str,
        target_id: str,
        message_count: int,
    ) -> Optional[SuggestionInteraction]:
        """Store that the coach picked a suggestion. Returns None if the write failed."""
        interaction = SuggestionInteraction(
            suggestion_id=suggestion_id,
            session_id=session_id,
            coach_id=coach_id,
            target_id=target_id,
            selected_text=selected_text,
            message_count_at_selection=message_count,
        )
        try:
            await self._interactions.insert_interaction(interaction)
        except Exception as e:
            logger.error(
                "Failed to record suggestion interaction",
                extra={"suggestion_id": suggestion_id, "session_id": session_id, "error": str(e)}
            )
            return None

        logger.info(
            "Suggestion interaction recorded",
            extra={"suggestion_id": suggestion_id, "session_id": session_id}
        )
        return interaction

    async def mark_effectiveness(self, coach_id: str, suggestion_id: str, was_effective: bool) -> int:
        """Flag the coach's interactions with `suggestion_id`. Returns rows updated, 0 on failure."""
        try:
            return await self._interactions.set_effectiveness(coach_id, suggestion_id, was_effective)
        except Exception as e:
            logger.error(
                "Failed to update suggestion effectiveness",
                extra={"suggestion_id": suggestion_id, "error": str(e)}
            )
            return 0
