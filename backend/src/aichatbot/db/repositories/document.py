"""
Document store repository.

Documents are versioned by insertion: every save adds a row sharing the
document id with a new ``created_at``. Nothing is updated in place.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import Document, DocumentKind, Suggestion
from aichatbot.utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

# Inserts attempted before a version timestamp collision is reported
SAVE_ATTEMPTS = 5


class DocumentRepository(BaseRepository[Document]):
    """Repository for Document versions."""

    def __init__(self, session: Session):
        super().__init__(Document, session)

    def save(
        self,
        id: uuid.UUID,
        title: str,
        kind: DocumentKind,
        content: Optional[str],
        user_id: uuid.UUID,
    ) -> Document:
        """
        Insert a new version of a document.

        The version timestamp is strictly greater than any version already
        visible to this session. A concurrent writer can still claim the same
        (id, created_at) key between the read and the insert, so each insert
        runs in a savepoint and is retried past the conflicting version.

        Args:
            id: Document id shared by all versions
            title: Document title
            kind: Document kind
            content: Full materialized content
            user_id: Owner UUID

        Returns:
            The persisted version

        Raises:
            IntegrityError: If every attempt collided with another version
        """
        for attempt in range(1, SAVE_ATTEMPTS + 1):
            created_at = self._next_version_time(id)
            savepoint = self.session.begin_nested()
            try:
                document = self.create(
                    id=id,
                    created_at=created_at,
                    title=title,
                    kind=DocumentKind(kind),
                    content=content,
                    user_id=user_id,
                )
                savepoint.commit()
                return document
            except IntegrityError:
                savepoint.rollback()
                if attempt == SAVE_ATTEMPTS:
                    raise
                logger.debug(
                    f"Version {created_at.isoformat()} of document {id} already "
                    f"exists, retrying ({attempt}/{SAVE_ATTEMPTS})"
                )

    def _next_version_time(self, id: uuid.UUID) -> datetime:
        created_at = utcnow()
        latest = self.current_version(id)
        if latest is not None:
            latest_at = as_utc(latest.created_at)
            if latest_at >= created_at:
                created_at = latest_at + timedelta(microseconds=1)
        return created_at

    def list_versions(self, id: uuid.UUID) -> List[Document]:
        """Full version history, oldest first."""
        return (
            self.session.query(Document)
            .filter(Document.id == id)
            .order_by(Document.created_at.asc())
            .all()
        )

    def current_version(self, id: uuid.UUID) -> Optional[Document]:
        """Most recent version, or None if the document does not exist."""
        return (
            self.session.query(Document)
            .filter(Document.id == id)
            .order_by(Document.created_at.desc())
            .first()
        )

    def delete_after(self, id: uuid.UUID, timestamp: datetime) -> int:
        """
        Delete versions created strictly after a timestamp, with their suggestions.

        Used to revert a document to an earlier version. Loaded versions are
        expired rather than evaluated in Python, since SQLite hands back naive
        timestamps that cannot be compared with an aware cutoff.

        Returns:
            Number of versions deleted
        """
        self.session.execute(
            delete(Suggestion).where(
                Suggestion.document_id == id,
                Suggestion.document_created_at > timestamp,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(
            delete(Document).where(
                Document.id == id,
                Document.created_at > timestamp,
            )
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        return result.rowcount or 0
