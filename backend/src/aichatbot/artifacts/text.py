"""Text document handler: markdown prose streamed incrementally."""

from aichatbot.ai.prompts import TEXT_PROMPT, update_document_prompt
from aichatbot.artifacts.base import DocumentHandler, DocumentSnapshot
from aichatbot.models.db import DocumentKind
from aichatbot.streaming.deltas import DeltaEncoder, DeltaSink, DeltaType


class TextDocumentHandler(DocumentHandler):
    kind = DocumentKind.TEXT
    delta_types = frozenset({DeltaType.TEXT})

    def _encoder(self) -> DeltaEncoder:
        return DeltaEncoder(DeltaType.TEXT, emit_step_finish=False)

    async def on_create_document(self, *, title: str, sink: DeltaSink) -> str:
        return await self.stream_model(TEXT_PROMPT, title, self._encoder(), sink)

    async def on_update_document(
        self, *, document: DocumentSnapshot, description: str, sink: DeltaSink
    ) -> str:
        return await self.stream_model(
            update_document_prompt(document.content, self.kind.value),
            description,
            self._encoder(),
            sink,
        )
