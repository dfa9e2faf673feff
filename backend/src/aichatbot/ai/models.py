"""
Named language models.

The application refers to models by role ("chat-model", "title-model", ...)
rather than by provider model id. The registry binds each role to a
provider, a model id and optional reasoning extraction.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from aichatbot.ai.providers import create_provider
from aichatbot.ai.providers.base import (
    ChatMessage,
    InferenceChunk,
    InferenceProvider,
    ToolSpec,
)
from aichatbot.ai.reasoning import ReasoningExtractor
from aichatbot.config import Settings

logger = logging.getLogger(__name__)

CHAT_MODEL = "chat-model"
REASONING_MODEL = "chat-model-reasoning"
TITLE_MODEL = "title-model"
ARTIFACT_MODEL = "artifact-model"


@dataclass
class LanguageModel:
    """A provider model bound to a role name."""

    name: str
    provider: InferenceProvider
    model_id: str
    reasoning_tag: Optional[str] = None
    max_tokens: int = 4096

    @property
    def supports_image_generation(self) -> bool:
        return self.provider.supports_image_generation

    async def stream(
        self,
        system: str,
        messages: list[ChatMessage],
        tools: Optional[list[ToolSpec]] = None,
        temperature: float = 0.7,
    ) -> AsyncIterator[InferenceChunk]:
        """Stream raw chunks, splitting tagged reasoning out of text if configured."""
        extractor = ReasoningExtractor(self.reasoning_tag) if self.reasoning_tag else None

        async for chunk in self.provider.stream(
            model=self.model_id,
            system=system,
            messages=messages,
            tools=tools,
            max_tokens=self.max_tokens,
            temperature=temperature,
        ):
            if extractor is None:
                yield chunk
                continue
            if chunk.type == "text":
                for split in extractor.feed(chunk.text):
                    yield split
            else:
                if chunk.type == "finish":
                    for split in extractor.flush():
                        yield split
                yield chunk

    async def complete_text(self, system: str, prompt: str) -> str:
        """Run a prompt to completion and return the text output."""
        parts: list[str] = []
        async for chunk in self.stream(system, [ChatMessage.user(prompt)]):
            if chunk.type == "text":
                parts.append(chunk.text)
        return "".join(parts)


class ModelRegistry:
    """Lookup of language models by role name."""

    def __init__(
        self,
        models: dict[str, LanguageModel],
        image_model_id: Optional[str] = None,
    ):
        self._models = dict(models)
        self.image_model_id = image_model_id

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelRegistry":
        """Build the default registry from application settings.

        Raises:
            ValueError: If the configured provider has no API key
        """
        provider_type = settings.inference_provider
        api_key = (
            settings.openai_api_key
            if provider_type == "openai"
            else settings.anthropic_api_key
        )
        provider = create_provider(provider_type, api_key)  # type: ignore[arg-type]

        def bind(name: str, model_id: str, reasoning: bool = False) -> LanguageModel:
            return LanguageModel(
                name=name,
                provider=provider,
                model_id=model_id,
                reasoning_tag=settings.reasoning_tag if reasoning else None,
                max_tokens=settings.max_tokens,
            )

        logger.info(f"Model registry bound to {provider.provider_name} provider")
        return cls(
            {
                CHAT_MODEL: bind(CHAT_MODEL, settings.chat_model_id),
                REASONING_MODEL: bind(
                    REASONING_MODEL, settings.reasoning_model_id, reasoning=True
                ),
                TITLE_MODEL: bind(TITLE_MODEL, settings.title_model_id),
                ARTIFACT_MODEL: bind(ARTIFACT_MODEL, settings.artifact_model_id),
            },
            image_model_id=(
                settings.openai_image_model
                if provider.supports_image_generation
                else None
            ),
        )

    def get(self, name: str) -> LanguageModel:
        """
        Get a model by role name.

        Raises:
            KeyError: If no model is bound to the name
        """
        try:
            return self._models[name]
        except KeyError:
            raise KeyError(f"Unknown model: {name}") from None

    def names(self) -> list[str]:
        return sorted(self._models)
