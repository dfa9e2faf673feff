"""Model access: providers, named models and reasoning extraction."""

from aichatbot.ai.models import LanguageModel, ModelRegistry

__all__ = ["LanguageModel", "ModelRegistry"]
