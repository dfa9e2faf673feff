"""
Stream registry.

Durable mapping from a conversation to the ordered list of its stream ids.
A stream id is committed before any delta is produced so that a concurrent
reconnect can discover an in-flight stream that has not emitted anything yet.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from aichatbot.db import SessionScope
from aichatbot.db.repositories import StreamRecordRepository
from aichatbot.exceptions import RegistrationFailure
from aichatbot.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class StreamRegistry:
    """Records stream starts and finds the most recent stream of a conversation."""

    def __init__(self, session_scope: SessionScope, retention_hours: int = 24):
        """
        Args:
            session_scope: Session factory; each call commits on exit
            retention_hours: Records older than this are ignored by lookups
        """
        self.session_scope = session_scope
        self.retention_hours = retention_hours

    def _retention_cutoff(self) -> datetime:
        return utcnow() - timedelta(hours=self.retention_hours)

    def record_stream_start(self, conversation_id: uuid.UUID) -> uuid.UUID:
        """
        Register a new stream for a conversation.

        Returns:
            The new stream id, already committed

        Raises:
            RegistrationFailure: If the record could not be persisted
        """
        try:
            with self.session_scope() as session:
                record = StreamRecordRepository(session).create_for_conversation(
                    conversation_id
                )
                stream_id = record.id
        except SQLAlchemyError as e:
            logger.error(
                f"Stream registration failed for conversation {conversation_id}: {e}"
            )
            raise RegistrationFailure(conversation_id, str(e)) from e

        logger.info(f"Registered stream {stream_id} for conversation {conversation_id}")
        return stream_id

    def list_stream_ids(self, conversation_id: uuid.UUID) -> list[uuid.UUID]:
        """Stream ids within the retention window, oldest first."""
        with self.session_scope() as session:
            return StreamRecordRepository(session).get_ids_by_conversation(
                conversation_id, since=self._retention_cutoff()
            )

    def latest_stream_id(self, conversation_id: uuid.UUID) -> Optional[uuid.UUID]:
        """The most recent stream id, the candidate for resumption."""
        stream_ids = self.list_stream_ids(conversation_id)
        return stream_ids[-1] if stream_ids else None

    def prune(self, older_than: Optional[datetime] = None) -> int:
        """
        Delete stream records and their logs beyond the retention window.

        Returns:
            Number of stream records deleted
        """
        cutoff = older_than or self._retention_cutoff()
        with self.session_scope() as session:
            deleted = StreamRecordRepository(session).delete_older_than(cutoff)
        logger.info(f"Pruned {deleted} stream record(s) older than {cutoff}")
        return deleted
