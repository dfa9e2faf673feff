"""
Resumable streaming pipeline.

Deltas produced by a run are persisted to an append-only log and fanned out
to live subscribers; late or reconnecting subscribers resume from a cursor.
"""

from aichatbot.streaming.context import (
    ResumableStreamContext,
    StreamState,
    Subscription,
)
from aichatbot.streaming.deltas import (
    Delta,
    DeltaEncoder,
    DeltaSink,
    DeltaType,
    SequencedDelta,
)
from aichatbot.streaming.log import DeltaLog
from aichatbot.streaming.manager import StreamManager
from aichatbot.streaming.registry import StreamRegistry

__all__ = [
    "Delta",
    "DeltaEncoder",
    "DeltaLog",
    "DeltaSink",
    "DeltaType",
    "ResumableStreamContext",
    "SequencedDelta",
    "StreamManager",
    "StreamRegistry",
    "StreamState",
    "Subscription",
]
