"""
Document handler registry.

Maps each document kind to exactly one handler. Adding a kind means
registering one more handler; nothing else in the pipeline changes.
"""

import logging
from typing import Union

from aichatbot.ai.models import ModelRegistry
from aichatbot.artifacts.base import DocumentHandler
from aichatbot.artifacts.code import CodeDocumentHandler
from aichatbot.artifacts.image import ImageDocumentHandler
from aichatbot.artifacts.sheet import SheetDocumentHandler
from aichatbot.artifacts.text import TextDocumentHandler
from aichatbot.db import SessionScope
from aichatbot.exceptions import UnknownDocumentKind
from aichatbot.models.db import DocumentKind

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """
    Registry of document handlers keyed by kind.

    Example:
        >>> registry = HandlerRegistry()
        >>> registry.register(TextDocumentHandler(models, db_session))
        >>> handler = registry.get("text")
    """

    def __init__(self) -> None:
        self._handlers: dict[DocumentKind, DocumentHandler] = {}

    def register(self, handler: DocumentHandler) -> None:
        """
        Register a handler for its kind.

        Raises:
            ValueError: If a handler for the same kind is already registered
        """
        if handler.kind in self._handlers:
            raise ValueError(
                f"A handler for document kind '{handler.kind.value}' is already registered"
            )
        self._handlers[handler.kind] = handler
        logger.debug(f"Registered document handler: {type(handler).__name__}")

    def get(self, kind: Union[str, DocumentKind]) -> DocumentHandler:
        """
        Get the handler for a kind.

        Raises:
            UnknownDocumentKind: If the kind is not known or has no handler
        """
        try:
            return self._handlers[DocumentKind(kind)]
        except (ValueError, KeyError):
            raise UnknownDocumentKind(str(getattr(kind, "value", kind))) from None

    def kinds(self) -> list[str]:
        return [kind.value for kind in self._handlers]

    def vocabulary(self) -> dict[str, list[str]]:
        """Content delta types emitted per kind, for clients."""
        return {
            kind.value: sorted(t.value for t in handler.delta_types)
            for kind, handler in self._handlers.items()
        }


def build_default_registry(
    models: ModelRegistry, session_scope: SessionScope
) -> HandlerRegistry:
    """Registry with the built-in text, code, sheet and image handlers."""
    registry = HandlerRegistry()
    for handler_cls in (
        TextDocumentHandler,
        CodeDocumentHandler,
        SheetDocumentHandler,
        ImageDocumentHandler,
    ):
        registry.register(handler_cls(models, session_scope))
    return registry
