"""
Claude-backed coaching provider.

The prompts live here, next to the parsing of what they ask for. Changing
a prompt changes what the product does, so they are versioned and
reviewed like code.

Claude answers strategist and suggestion requests in JSON. The reply is
decoded here but not trusted: the core validates every field before it
reaches a session.
"""

import json
import logging
from typing import Any, Callable, Optional, Protocol

from ...core.coaching.errors import ProviderError, ProviderUnavailable
from ...core.coaching.models import ChatMessage, MessageSender, utcnow


logger = logging.getLogger(__name__)


class ChatModelClient(Protocol):
    """Anything that can continue a conversation given a system prompt."""

    async def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        ...


class DeferredChatClient:
    """
    Chat client that is built on its first call.

    Creating the SDK client validates configuration, so a missing API key
    only fails the requests that actually talk to Claude.
    """

    def __init__(self, factory: Callable[[], ChatModelClient]) -> None:
        self._factory = factory
        self._client: Optional[ChatModelClient] = None

    async def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        if self._client is None:
            try:
                self._client = self._factory()
            except ValueError as e:
                logger.error("Claude client is not configured", extra={"error": str(e)})
                raise ProviderUnavailable(f"Claude client is not configured: {e}") from e
        return await self._client.chat(
            messages=messages,
            system_prompt=system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

COACH_SYSTEM_PROMPT = """You are an expert relationship coach specializing in interpersonal communication. You help the user navigate challenging conversations with {target_name} and improve that relationship.

CONVERSATION STAGE: {stage}

{stage_guidance}"""

STAGE_GUIDANCE = {
    "INFORMATION GATHERING": """Focus on:
- Understanding the relationship dynamics
- Identifying the specific communication challenge
- Asking clarifying questions to understand their perspective
- Being empathetic and supportive

Keep responses concise (2-3 sentences) and focus on one key question or insight at a time.""",
    "EXPLORATION": """Focus on:
- Diving deeper into the emotional aspects
- Understanding patterns in their communication
- Exploring what they've tried before
- Helping them reflect on their own role in the dynamic

Provide more detailed insights but still ask follow-up questions.""",
    "ANALYSIS PREPARATION": """Focus on:
- Synthesizing the information gathered
- Identifying key themes and patterns
- Summarizing their situation clearly

If they seem ready, offer to analyze everything discussed and provide personalized communication strategies.""",
}

STRATEGIST_PROMPT = """You are an expert relationship strategist and communication coach. Analyze the conversation below about {target_name} and provide personalized, actionable strategies.

CONVERSATION TO ANALYZE:
{conversation}

Respond with JSON only, in exactly this shape:
{{
  "analysis": "2-3 paragraph summary of the relationship dynamic, the main challenge and what is working",
  "suggestions": [
    {{
      "title": "Clear, actionable strategy name",
      "description": "How to apply it, including a concrete message the user could send",
      "why_it_works": "The psychological insight behind the strategy for this relationship"
    }}
  ]
}}

Give three suggestions. Make them specific to this conversation, not generic advice."""

SUGGESTIONS_PROMPT = """You are generating reply suggestions for a relationship coaching conversation. Each suggestion is something the USER could say next, directly answering or building on the coach's most recent message.

CONVERSATION CONTEXT:
{conversation}

COACH'S LAST MESSAGE:
{last_ai_message}

SUGGESTION FOCUS: {suggestion_type}

Respond with a JSON array only, four items, each shaped like:
{{"text": "the reply, written in first person", "priority": "high" | "medium" | "low", "type": "{suggestion_type}"}}"""


def conversation_stage(user_message_count: int) -> str:
    if user_message_count <= 3:
        return "INFORMATION GATHERING"
    if user_message_count <= 6:
        return "EXPLORATION"
    return "ANALYSIS PREPARATION"


def suggestion_type(message_count: int) -> str:
    if message_count <= 2:
        return "getting_started"
    if message_count <= 4:
        return "adding_context"
    if message_count <= 6:
        return "specific_details"
    return "ready_for_analysis"


def format_transcript(messages: list[ChatMessage]) -> str:
    return "\n".join(
        f"{'User' if m.sender is MessageSender.USER else 'AI Coach'}: {m.content}"
        for m in messages
    )


def parse_json_reply(text: str) -> Any:
    """
    Decode a JSON reply, tolerating a surrounding markdown code fence.

    Raises:
        ProviderError: the reply isn't JSON
    """
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.split("\n", 1)[1] if "\n" in cleaned else ""
        if cleaned.rstrip().endswith("```"):
            cleaned = cleaned.rstrip()[:-3]
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(
            "Model reply is not valid JSON",
            extra={"reply_start": text[:100], "error": str(e)}
        )
        raise ProviderError(f"Model reply is not valid JSON: {e}")


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class ClaudeCoachingProvider:
    """CoachingProvider backed by a Claude chat client."""

    def __init__(self, client: ChatModelClient) -> None:
        self._client = client

    async def handle_user_message(
        self,
        session_id: str,
        message: str,
        target_name: str,
        history: list[ChatMessage],
    ) -> ChatMessage:
        user_count = 1 + sum(1 for m in history if m.sender is MessageSender.USER)
        stage = conversation_stage(user_count)
        system_prompt = COACH_SYSTEM_PROMPT.format(
            target_name=target_name or "the other person",
            stage=stage,
            stage_guidance=STAGE_GUIDANCE[stage],
        )

        turns = [
            {
                "role": "user" if m.sender is MessageSender.USER else "assistant",
                "content": m.content,
            }
            for m in history
        ]
        turns.append({"role": "user", "content": message})

        reply = await self._client.chat(messages=turns, system_prompt=system_prompt)
        if not reply.strip():
            raise ProviderError("Model returned an empty reply")

        logger.debug(
            "Coach reply generated",
            extra={"session_id": session_id, "stage": stage, "reply_length": len(reply)}
        )
        return ChatMessage.create(reply.strip(), MessageSender.AI, now=utcnow())

    async def trigger_strategist(
        self,
        session_id: str,
        target_name: str,
        chat_history: list[ChatMessage],
    ) -> Any:
        prompt = STRATEGIST_PROMPT.format(
            target_name=target_name or "Unknown",
            conversation=format_transcript(chat_history),
        )
        reply = await self._client.chat(
            messages=[{"role": "user", "content": prompt}],
            system_prompt="You produce structured coaching analyses as strict JSON.",
            temperature=0.3,
            max_tokens=3000,
        )
        logger.info(
            "Strategist reply received",
            extra={"session_id": session_id, "reply_length": len(reply)}
        )
        return parse_json_reply(reply)

    async def generate_suggestions(
        self,
        session_id: str,
        target_id: str,
        messages: list[ChatMessage],
        message_count: int,
        last_ai_message: Optional[str],
    ) -> list[Any]:
        kind = suggestion_type(message_count)
        prompt = SUGGESTIONS_PROMPT.format(
            conversation=format_transcript(messages),
            last_ai_message=last_ai_message or "(none yet)",
            suggestion_type=kind,
        )
        reply = await self._client.chat(
            messages=[{"role": "user", "content": prompt}],
            system_prompt="You write short, natural replies a coaching client could send.",
            temperature=0.8,
            max_tokens=600,
        )
        parsed = parse_json_reply(reply)
        if not isinstance(parsed, list):
            raise ProviderError("Suggestion reply is not a JSON array")
        return parsed
