"""Sheet document handler: CSV content, re-rendered whole on every delta."""

from aichatbot.ai.prompts import SHEET_PROMPT, update_document_prompt
from aichatbot.artifacts.base import DocumentHandler, DocumentSnapshot
from aichatbot.artifacts.code import strip_code_fences
from aichatbot.models.db import DocumentKind
from aichatbot.streaming.deltas import DeltaEncoder, DeltaSink, DeltaType


class SheetDocumentHandler(DocumentHandler):
    kind = DocumentKind.SHEET
    delta_types = frozenset({DeltaType.SHEET})

    def _encoder(self) -> DeltaEncoder:
        return DeltaEncoder(
            DeltaType.SHEET,
            cumulative=True,
            transform=strip_code_fences,
            emit_step_finish=False,
        )

    async def on_create_document(self, *, title: str, sink: DeltaSink) -> str:
        return await self.stream_model(SHEET_PROMPT, title, self._encoder(), sink)

    async def on_update_document(
        self, *, document: DocumentSnapshot, description: str, sink: DeltaSink
    ) -> str:
        return await self.stream_model(
            update_document_prompt(document.content, self.kind.value),
            description,
            self._encoder(),
            sink,
        )
