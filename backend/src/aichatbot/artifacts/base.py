"""
Base class for document-kind handlers.

Every handler exposes the same two operations, ``create_document`` and
``update_document``. The base class owns the parts common to all kinds:
header deltas, recovery from unsupported capabilities, and saving the
final content as a new document version. Subclasses only say how content
is produced.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, ClassVar, Optional

from aichatbot.ai.models import ARTIFACT_MODEL, LanguageModel, ModelRegistry
from aichatbot.ai.providers.base import ChatMessage
from aichatbot.db import SessionScope
from aichatbot.db.repositories import DocumentRepository
from aichatbot.exceptions import CapabilityUnsupported
from aichatbot.models.db import Document, DocumentKind
from aichatbot.streaming.deltas import Delta, DeltaEncoder, DeltaSink, DeltaType
from aichatbot.utils.timeutils import as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentSnapshot:
    """Detached, read-only copy of one document version."""

    id: uuid.UUID
    title: str
    kind: DocumentKind
    content: Optional[str]
    user_id: uuid.UUID
    created_at: datetime

    @classmethod
    def from_model(cls, document: Document) -> "DocumentSnapshot":
        return cls(
            id=document.id,
            title=document.title,
            kind=DocumentKind(document.kind),
            content=document.content,
            user_id=document.user_id,
            created_at=as_utc(document.created_at),
        )


class DocumentHandler(ABC):
    """
    Drives inference to create or revise one kind of document.

    Attributes:
        kind: The document kind this handler produces
        delta_types: Content delta types this handler emits, so clients can
            consume deltas without per-kind transport logic
    """

    kind: ClassVar[DocumentKind]
    delta_types: ClassVar[frozenset[DeltaType]]

    def __init__(self, models: ModelRegistry, session_scope: SessionScope):
        self.models = models
        self.session_scope = session_scope

    @property
    def model(self) -> LanguageModel:
        return self.models.get(ARTIFACT_MODEL)

    async def create_document(
        self,
        *,
        document_id: uuid.UUID,
        title: str,
        sink: DeltaSink,
        user_id: uuid.UUID,
    ) -> str:
        """
        Materialize a new document from its title.

        Writes ``id``, ``title`` and ``kind`` deltas before any content,
        streams content deltas, then saves the first version.

        Returns:
            The final content
        """
        for delta in DeltaEncoder.header(document_id, title, self.kind.value):
            sink.write(delta)

        content = await self._produce(
            self.on_create_document(title=title, sink=sink), sink
        )
        self._save(document_id, title, content, user_id)
        return content

    async def update_document(
        self,
        *,
        document: DocumentSnapshot,
        description: str,
        sink: DeltaSink,
        user_id: uuid.UUID,
    ) -> str:
        """
        Revise an existing document following natural-language instructions.

        Writes a ``clear`` delta, streams the revision, then saves it as a
        new version.

        Returns:
            The revised content
        """
        sink.write(Delta(DeltaType.CLEAR, document.title))

        content = await self._produce(
            self.on_update_document(
                document=document, description=description, sink=sink
            ),
            sink,
        )
        self._save(document.id, document.title, content, user_id)
        return content

    async def _produce(self, generation: Awaitable[str], sink: DeltaSink) -> str:
        try:
            return await generation
        except CapabilityUnsupported as e:
            logger.info(f"{self.kind.value} handler cannot produce content: {e}")
            sink.write(Delta(DeltaType.ERROR, str(e)))
            return str(e)

    def _save(
        self, document_id: uuid.UUID, title: str, content: str, user_id: uuid.UUID
    ) -> None:
        with self.session_scope() as session:
            DocumentRepository(session).save(
                id=document_id,
                title=title,
                kind=self.kind,
                content=content,
                user_id=user_id,
            )
        logger.info(f"Saved {self.kind.value} document {document_id}")

    async def stream_model(
        self, system: str, prompt: str, encoder: DeltaEncoder, sink: DeltaSink
    ) -> str:
        """Stream the artifact model through an encoder into the sink."""
        async for chunk in self.model.stream(system, [ChatMessage.user(prompt)]):
            for delta in encoder.encode(chunk):
                sink.write(delta)
        return encoder.content

    @abstractmethod
    async def on_create_document(self, *, title: str, sink: DeltaSink) -> str:
        """Produce content for a new document, writing content deltas."""
        ...

    @abstractmethod
    async def on_update_document(
        self, *, document: DocumentSnapshot, description: str, sink: DeltaSink
    ) -> str:
        """Produce revised content, writing content deltas."""
        ...
