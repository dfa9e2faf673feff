"""
Stream record repository.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import StreamRecord
from aichatbot.utils.timeutils import utcnow


class StreamRecordRepository(BaseRepository[StreamRecord]):
    """Repository for StreamRecord model."""

    def __init__(self, session: Session):
        super().__init__(StreamRecord, session)

    def create_for_conversation(self, conversation_id: uuid.UUID) -> StreamRecord:
        """Insert a new stream record with a fresh id."""
        return self.create(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            created_at=utcnow(),
        )

    def get_ids_by_conversation(
        self, conversation_id: uuid.UUID, since: Optional[datetime] = None
    ) -> List[uuid.UUID]:
        """
        Get stream ids for a conversation, oldest first.

        Args:
            conversation_id: Conversation UUID
            since: Ignore records created before this time

        Returns:
            List of stream ids
        """
        query = self.session.query(StreamRecord.id).filter(
            StreamRecord.conversation_id == conversation_id
        )
        if since is not None:
            query = query.filter(StreamRecord.created_at >= since)
        return [row.id for row in query.order_by(StreamRecord.created_at.asc())]

    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete stream records (and their delta logs) created before a cutoff.

        Returns:
            Number of stream records deleted
        """
        records = (
            self.session.query(StreamRecord)
            .filter(StreamRecord.created_at < cutoff)
            .all()
        )
        for record in records:
            self.session.delete(record)
        self.session.flush()
        return len(records)
