"""
Stream delta log repository.

Append-only: rows are inserted with consecutive sequence numbers per stream
and never updated.
"""

import uuid
from typing import Any, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import StreamDelta

TERMINAL_DELTA_TYPE = "finish"


class StreamDeltaRepository(BaseRepository[StreamDelta]):
    """Repository for the persisted delta log."""

    def __init__(self, session: Session):
        super().__init__(StreamDelta, session)

    def append(
        self, stream_id: uuid.UUID, sequence: int, delta_type: str, content: Any
    ) -> StreamDelta:
        """
        Append one delta to a stream's log.

        Raises:
            sqlalchemy.exc.IntegrityError: If (stream_id, sequence) already exists
        """
        entry = StreamDelta(
            stream_id=stream_id,
            sequence=sequence,
            delta_type=delta_type,
            payload={"content": content},
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def append_many(
        self, stream_id: uuid.UUID, entries: list[tuple[int, str, Any]]
    ) -> None:
        """
        Append several deltas in one flush.

        Args:
            stream_id: Stream the deltas belong to
            entries: (sequence, delta_type, content) tuples
        """
        self.session.add_all(
            [
                StreamDelta(
                    stream_id=stream_id,
                    sequence=sequence,
                    delta_type=delta_type,
                    payload={"content": content},
                )
                for sequence, delta_type, content in entries
            ]
        )
        self.session.flush()

    def list_after(self, stream_id: uuid.UUID, cursor: int = 0) -> List[StreamDelta]:
        """Get log entries with sequence > cursor, in sequence order."""
        return (
            self.session.query(StreamDelta)
            .filter(StreamDelta.stream_id == stream_id, StreamDelta.sequence > cursor)
            .order_by(StreamDelta.sequence.asc())
            .all()
        )

    def last_sequence(self, stream_id: uuid.UUID) -> int:
        """Highest sequence number written for a stream (0 if none)."""
        return (
            self.session.query(func.max(StreamDelta.sequence))
            .filter(StreamDelta.stream_id == stream_id)
            .scalar()
            or 0
        )

    def is_finished(self, stream_id: uuid.UUID) -> bool:
        """Whether a terminal delta has been written for a stream."""
        return (
            self.session.query(StreamDelta.sequence)
            .filter(
                StreamDelta.stream_id == stream_id,
                StreamDelta.delta_type == TERMINAL_DELTA_TYPE,
            )
            .first()
            is not None
        )
