"""Streaming inference providers.

Currently supported providers:
- Anthropic (claude-3-haiku, claude-3-sonnet, ...), no image generation
- OpenAI (gpt-4o-mini, gpt-4o, ...), with image generation

Usage:
    from aichatbot.ai.providers import create_provider

    provider = create_provider(provider_type="anthropic", api_key="sk-ant-xxx")

    async for chunk in provider.stream(
        model="claude-3-haiku-20240307",
        system="You are a friendly assistant!",
        messages=[ChatMessage.user("Hello")],
    ):
        ...
"""

import logging
from typing import Literal

from aichatbot.ai.providers.base import (
    ChatMessage,
    InferenceChunk,
    InferenceProvider,
    ToolSpec,
)

logger = logging.getLogger(__name__)

# Type alias for provider names
ProviderType = Literal["openai", "anthropic"]


def create_provider(provider_type: ProviderType, api_key: str) -> InferenceProvider:
    """Factory function to create inference providers.

    Args:
        provider_type: The provider to use ("openai" or "anthropic")
        api_key: API key for the provider

    Returns:
        Configured InferenceProvider instance

    Raises:
        ValueError: If provider_type is unknown or api_key is missing
    """
    if not api_key:
        raise ValueError(f"API key is required for {provider_type} provider")

    if provider_type == "openai":
        from aichatbot.ai.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(api_key=api_key)

    elif provider_type == "anthropic":
        from aichatbot.ai.providers.anthropic_provider import AnthropicProvider

        return AnthropicProvider(api_key=api_key)

    else:
        raise ValueError(
            f"Unknown provider type: {provider_type}. "
            f"Supported providers: openai, anthropic"
        )


def get_available_providers() -> list[str]:
    """Get list of available provider types."""
    return ["openai", "anthropic"]


__all__ = [
    "ChatMessage",
    "InferenceChunk",
    "InferenceProvider",
    "ProviderType",
    "ToolSpec",
    "create_provider",
    "get_available_providers",
]
