"""
Anthropic Claude integration.

Implements the CoachingProvider protocol from core.coaching.provider.
"""

from .client import AnthropicChatClient, AnthropicConfig, create_anthropic_client
from .provider import ClaudeCoachingProvider

__all__ = [
    "AnthropicChatClient",
    "AnthropicConfig",
    "ClaudeCoachingProvider",
    "create_anthropic_client",
]
