"""
Writing suggestions for a document.

The artifact model answers with one JSON object per line. Objects are
parsed as soon as their line is complete, so each suggestion reaches
subscribers while the model is still writing the next one.
"""

import json
import logging
import uuid
from typing import Any, Iterator

from aichatbot.ai.models import ARTIFACT_MODEL, ModelRegistry
from aichatbot.ai.prompts import SUGGESTIONS_PROMPT
from aichatbot.ai.providers.base import ChatMessage
from aichatbot.artifacts.base import DocumentSnapshot
from aichatbot.db import SessionScope
from aichatbot.db.repositories import SuggestionRepository
from aichatbot.streaming.deltas import Delta, DeltaSink, DeltaType

logger = logging.getLogger(__name__)


class NDJSONParser:
    """Incremental newline-delimited JSON parser."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> Iterator[dict[str, Any]]:
        self._pending += text
        while "\n" in self._pending:
            line, self._pending = self._pending.split("\n", 1)
            item = self._parse(line)
            if item is not None:
                yield item

    def flush(self) -> Iterator[dict[str, Any]]:
        line, self._pending = self._pending, ""
        item = self._parse(line)
        if item is not None:
            yield item

    @staticmethod
    def _parse(line: str) -> dict[str, Any] | None:
        line = line.strip().strip(",")
        if not line or line.startswith("```") or line in ("[", "]"):
            return None
        try:
            value = json.loads(line)
        except json.JSONDecodeError:
            logger.warning(f"Skipping malformed suggestion line: {line[:80]}")
            return None
        return value if isinstance(value, dict) else None


class SuggestionGenerator:
    """Streams improvement suggestions for a document and saves them."""

    def __init__(self, models: ModelRegistry, session_scope: SessionScope):
        self.models = models
        self.session_scope = session_scope

    async def request_suggestions(
        self, *, document: DocumentSnapshot, sink: DeltaSink, user_id: uuid.UUID
    ) -> list[dict[str, Any]]:
        """
        Generate suggestions against the given document version.

        Each suggestion is written as a ``suggestion`` delta before the
        whole batch is saved.

        Returns:
            The suggestions as written to the sink
        """
        model = self.models.get(ARTIFACT_MODEL)
        parser = NDJSONParser()
        written: list[dict[str, Any]] = []

        def emit(item: dict[str, Any]) -> None:
            original = item.get("originalSentence")
            suggested = item.get("suggestedSentence")
            if not original or not suggested:
                return
            suggestion = {
                "id": str(uuid.uuid4()),
                "documentId": str(document.id),
                "originalText": original,
                "suggestedText": suggested,
                "description": item.get("description", ""),
                "isResolved": False,
            }
            sink.write(Delta(DeltaType.SUGGESTION, suggestion))
            written.append(suggestion)

        async for chunk in model.stream(
            SUGGESTIONS_PROMPT, [ChatMessage.user(document.content or "")]
        ):
            if chunk.type == "text":
                for item in parser.feed(chunk.text):
                    emit(item)
        for item in parser.flush():
            emit(item)

        with self.session_scope() as session:
            SuggestionRepository(session).save_for_document(
                document_id=document.id,
                document_created_at=document.created_at,
                suggestions=[
                    {
                        "id": s["id"],
                        "original_text": s["originalText"],
                        "suggested_text": s["suggestedText"],
                        "description": s["description"],
                    }
                    for s in written
                ],
                user_id=user_id,
            )
        logger.info(f"Saved {len(written)} suggestion(s) for document {document.id}")
        return written
