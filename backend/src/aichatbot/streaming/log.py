"""
Durable delta log.

Thin service over StreamDeltaRepository that opens its own short session
per call, so a stream context can keep writing after the request that
started it has closed its session. Calls are blocking; running contexts
batch their appends through append_many off the event loop.
"""

import uuid

from aichatbot.db import SessionScope
from aichatbot.db.repositories import StreamDeltaRepository
from aichatbot.streaming.deltas import Delta, DeltaType, SequencedDelta


class DeltaLog:
    """Append-only, sequenced delta storage keyed by stream id."""

    def __init__(self, session_scope: SessionScope):
        self.session_scope = session_scope

    def append(self, stream_id: uuid.UUID, sequence: int, delta: Delta) -> None:
        """Persist one delta at the given sequence number."""
        with self.session_scope() as session:
            StreamDeltaRepository(session).append(
                stream_id, sequence, delta.type.value, delta.content
            )

    def append_many(self, stream_id: uuid.UUID, items: list[SequencedDelta]) -> None:
        """Persist a batch of sequenced deltas in a single transaction."""
        with self.session_scope() as session:
            StreamDeltaRepository(session).append_many(
                stream_id,
                [
                    (item.sequence, item.delta.type.value, item.delta.content)
                    for item in items
                ],
            )

    def read_after(self, stream_id: uuid.UUID, cursor: int = 0) -> list[SequencedDelta]:
        """All persisted deltas with sequence > cursor, in order."""
        with self.session_scope() as session:
            entries = StreamDeltaRepository(session).list_after(stream_id, cursor)
            return [
                SequencedDelta(
                    sequence=entry.sequence,
                    delta=Delta(
                        type=DeltaType(entry.delta_type),
                        content=entry.payload.get("content"),
                    ),
                )
                for entry in entries
            ]

    def last_sequence(self, stream_id: uuid.UUID) -> int:
        with self.session_scope() as session:
            return StreamDeltaRepository(session).last_sequence(stream_id)

    def is_finished(self, stream_id: uuid.UUID) -> bool:
        with self.session_scope() as session:
            return StreamDeltaRepository(session).is_finished(stream_id)
