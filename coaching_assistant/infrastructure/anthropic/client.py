"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements the ChatModelClient protocol the coaching provider needs
2. Handles API-specific details (role names, alternation, response blocks)
3. Maps SDK failures onto ProviderError so the core can react to them

The wrapper doesn't know about coaching. It sends a system prompt and a
list of turns and returns the text Claude wrote.
"""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import APIError, RateLimitError

from ...core.coaching.errors import ProviderError


logger = logging.getLogger(__name__)


class AnthropicClientError(ProviderError):
    """Raised when API calls fail."""
    pass


class RateLimitExceeded(AnthropicClientError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """Configuration for the Anthropic client."""
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2048
    temperature: float = 0.7

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")


class AnthropicChatClient:
    """Sends conversations to Claude and returns the reply text."""

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key)

    async def chat(
        self,
        messages: list[dict[str, str]],
        system_prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """
        Continue a conversation with Claude.

        Takes a list of messages in the format:
        [{"role": "user", "content": "..."}, {"role": "assistant", "content": "..."}]
        """
        normalized = normalize_messages(messages)
        if not normalized:
            raise ValueError("At least one user message is required")

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=max_tokens or self._config.max_tokens,
                temperature=self._config.temperature if temperature is None else temperature,
                system=system_prompt,
                messages=normalized,
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit during chat", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.")
        except APIError as e:
            logger.error("API error during chat", extra={"error": str(e)})
            raise AnthropicClientError(f"API error: {e.message}")

        return extract_text(response)


def normalize_messages(messages: list[dict[str, str]]) -> list[dict[str, str]]:
    """
    Bring a turn list into the shape Claude accepts.

    Empty turns are skipped, consecutive turns from the same role are
    joined, and leading assistant turns are dropped since a conversation
    has to open with the user.
    """
    normalized: list[dict[str, str]] = []

    for msg in messages:
        role = msg.get("role", "")
        content = msg.get("content", "")

        if role not in ("user", "assistant"):
            raise ValueError(f"Invalid message role: {role}")
        if not content or not content.strip():
            continue
        if not normalized and role == "assistant":
            logger.debug("Dropped leading assistant turn")
            continue

        if normalized and normalized[-1]["role"] == role:
            normalized[-1] = {
                "role": role,
                "content": normalized[-1]["content"] + "\n\n" + content,
            }
        else:
            normalized.append({"role": role, "content": content})

    return normalized


def extract_text(response) -> str:
    """Join the text blocks of an API response."""
    if not response.content:
        return ""

    text_blocks = [
        block.text
        for block in response.content
        if hasattr(block, "text")
    ]
    return "\n".join(text_blocks)


def create_anthropic_client(
    api_key: str,
    model: str = "claude-sonnet-4-20250514",
    max_tokens: int = 2048,
    temperature: float = 0.7,
) -> AnthropicChatClient:
    """Build a client from plain settings values."""
    config = AnthropicConfig(
        api_key=api_key,
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
    )
    return AnthropicChatClient(config)
