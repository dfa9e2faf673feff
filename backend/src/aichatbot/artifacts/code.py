"""
Code document handler.

Code is re-rendered as a whole on every delta: each ``code-delta`` carries
the full snippet so far, with any markdown fence the model added removed.
"""

from aichatbot.ai.prompts import CODE_PROMPT, update_document_prompt
from aichatbot.artifacts.base import DocumentHandler, DocumentSnapshot
from aichatbot.models.db import DocumentKind
from aichatbot.streaming.deltas import DeltaEncoder, DeltaSink, DeltaType


def strip_code_fences(text: str) -> str:
    """
    Remove a surrounding markdown fence from possibly incomplete output.

    An opening fence line that has not been terminated yet yields "" so
    the language tag never leaks into content.

    Example:
        >>> strip_code_fences("```python\\nprint(1)\\n```")
        'print(1)'
    """
    stripped = text.lstrip()
    if not stripped.startswith("```"):
        return text

    newline = stripped.find("\n")
    if newline < 0:
        return ""
    body = stripped[newline + 1 :]
    closing = body.rfind("```")
    if closing >= 0:
        body = body[:closing]
    # A closing fence may still be arriving one backtick at a time
    return body.rstrip("`").rstrip()


class CodeDocumentHandler(DocumentHandler):
    kind = DocumentKind.CODE
    delta_types = frozenset({DeltaType.CODE})

    def _encoder(self) -> DeltaEncoder:
        return DeltaEncoder(
            DeltaType.CODE,
            cumulative=True,
            transform=strip_code_fences,
            emit_step_finish=False,
        )

    async def on_create_document(self, *, title: str, sink: DeltaSink) -> str:
        return await self.stream_model(CODE_PROMPT, title, self._encoder(), sink)

    async def on_update_document(
        self, *, document: DocumentSnapshot, description: str, sink: DeltaSink
    ) -> str:
        return await self.stream_model(
            update_document_prompt(document.content, self.kind.value),
            description,
            self._encoder(),
            sink,
        )
