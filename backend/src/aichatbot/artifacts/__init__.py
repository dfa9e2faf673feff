"""Document artifacts: per-kind handlers, their registry, and suggestions."""

from aichatbot.artifacts.base import DocumentHandler, DocumentSnapshot
from aichatbot.artifacts.registry import HandlerRegistry, build_default_registry
from aichatbot.artifacts.suggestions import SuggestionGenerator

__all__ = [
    "DocumentHandler",
    "DocumentSnapshot",
    "HandlerRegistry",
    "SuggestionGenerator",
    "build_default_registry",
]
