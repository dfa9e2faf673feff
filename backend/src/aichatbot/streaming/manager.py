"""
Stream manager.

Process-wide registry of running stream contexts keyed by stream id. A run
is a detached asyncio task owned by the manager, never by the connection
that started it; connections only attach and detach as subscribers.

Resumption resolves in three ways:
- the stream is running in this process: subscribe to its context
  (in-memory tail, then live deltas);
- the stream's log is finished: replay the log and end;
- the stream is registered but not running here (another worker owns it,
  or it has not produced yet): poll the log until a terminal delta appears
  or nothing new arrives within the inactivity timeout.
"""

import asyncio
import logging
import uuid
from typing import AsyncIterator, Optional

from aichatbot.config import settings
from aichatbot.db import SessionScope
from aichatbot.exceptions import ResumeNotFound, StreamConflict
from aichatbot.streaming.context import Producer, ResumableStreamContext
from aichatbot.streaming.deltas import SequencedDelta
from aichatbot.streaming.log import DeltaLog
from aichatbot.streaming.registry import StreamRegistry

logger = logging.getLogger(__name__)


class StreamManager:
    """Starts, tracks, stops and resumes production runs."""

    def __init__(
        self,
        session_scope: SessionScope,
        inactivity_timeout: Optional[float] = None,
        retention_hours: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ):
        """
        Args:
            session_scope: Session factory for the registry and delta log
            inactivity_timeout: Seconds without progress before a run is
                finalized as errored (defaults to settings)
            retention_hours: Stream records older than this are not resumed
                (defaults to settings)
            poll_interval: Log polling interval for streams owned elsewhere
                (defaults to settings)
        """
        self.inactivity_timeout = (
            inactivity_timeout
            if inactivity_timeout is not None
            else settings.stream_inactivity_timeout_seconds
        )
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else settings.stream_poll_interval_seconds
        )
        self.registry = StreamRegistry(
            session_scope,
            retention_hours=(
                retention_hours
                if retention_hours is not None
                else settings.stream_retention_hours
            ),
        )
        self.log = DeltaLog(session_scope)
        self._contexts: dict[uuid.UUID, ResumableStreamContext] = {}
        self._tasks: dict[uuid.UUID, asyncio.Task] = {}

    # Lifecycle

    def start_stream(
        self, conversation_id: uuid.UUID, produce: Producer
    ) -> ResumableStreamContext:
        """
        Register a stream and start its producer as a detached task.

        Must be called from a running event loop.

        Raises:
            StreamConflict: If the conversation already has a running stream
                in this process; nothing is recorded in that case
            RegistrationFailure: If the stream could not be recorded; the
                producer is never started in that case
        """
        running = self.active_context(conversation_id)
        if running is not None:
            raise StreamConflict(conversation_id, running.stream_id)

        stream_id = self.registry.record_stream_start(conversation_id)
        context = ResumableStreamContext(
            stream_id=stream_id,
            conversation_id=conversation_id,
            log=self.log,
            inactivity_timeout=self.inactivity_timeout,
        )
        self._contexts[stream_id] = context

        task = asyncio.create_task(context.run(produce), name=f"stream-{stream_id}")
        self._tasks[stream_id] = task
        task.add_done_callback(lambda t, sid=stream_id: self._on_run_done(sid, t))
        return context

    def _on_run_done(self, stream_id: uuid.UUID, task: asyncio.Task) -> None:
        self._contexts.pop(stream_id, None)
        self._tasks.pop(stream_id, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"Stream task {stream_id} ended with an error",
                exc_info=task.exception(),
            )

    def get_context(self, stream_id: uuid.UUID) -> Optional[ResumableStreamContext]:
        return self._contexts.get(stream_id)

    def active_context(
        self, conversation_id: uuid.UUID
    ) -> Optional[ResumableStreamContext]:
        """The running context of a conversation in this process, if any."""
        for context in self._contexts.values():
            if context.conversation_id == conversation_id and not context.is_closed:
                return context
        return None

    def stop(self, conversation_id: uuid.UUID) -> bool:
        """
        Cancel the running producer of a conversation.

        Returns:
            True if a running stream was stopped
        """
        context = self.active_context(conversation_id)
        if context is None:
            return False
        return context.stop()

    async def shutdown(self) -> None:
        """Cancel all running streams and wait for them to finalize."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.info(f"Shutting down {len(tasks)} running stream(s)")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # Resumption

    def resume(
        self,
        conversation_id: uuid.UUID,
        cursor: int = 0,
        stream_id: Optional[uuid.UUID] = None,
    ) -> AsyncIterator[SequencedDelta]:
        """
        Resume the latest (or a given) stream of a conversation after a cursor.

        Returns:
            Async iterator of sequenced deltas with sequence > cursor; it has
            an ``aclose()`` method for detaching early

        Raises:
            ResumeNotFound: If the conversation has no stream within the
                retention window, or stream_id is not one of its streams
        """
        known = self.registry.list_stream_ids(conversation_id)
        if stream_id is None:
            if not known:
                raise ResumeNotFound(conversation_id)
            stream_id = known[-1]
        elif stream_id not in known:
            raise ResumeNotFound(conversation_id, stream_id)

        context = self._contexts.get(stream_id)
        if context is not None:
            logger.debug(f"Resuming live stream {stream_id} from cursor {cursor}")
            return context.subscribe(cursor)

        if self.log.is_finished(stream_id):
            logger.debug(f"Replaying finished stream {stream_id} from cursor {cursor}")
            return self._replay(stream_id, cursor)

        logger.debug(f"Tailing stream {stream_id} owned elsewhere from cursor {cursor}")
        return self._tail(stream_id, cursor)

    def start_or_resume(
        self,
        conversation_id: uuid.UUID,
        cursor: Optional[int] = None,
        produce: Optional[Producer] = None,
    ) -> AsyncIterator[SequencedDelta]:
        """
        Transport entry point.

        With a producer, start a new run and subscribe to it from the cursor
        (default: the beginning). Without one, resume the conversation's
        latest stream.
        """
        if produce is not None:
            context = self.start_stream(conversation_id, produce)
            return context.subscribe(cursor or 0)
        return self.resume(conversation_id, cursor or 0)

    async def _replay(
        self, stream_id: uuid.UUID, cursor: int
    ) -> AsyncIterator[SequencedDelta]:
        for item in self.log.read_after(stream_id, cursor):
            yield item

    async def _tail(
        self, stream_id: uuid.UUID, cursor: int
    ) -> AsyncIterator[SequencedDelta]:
        loop = asyncio.get_running_loop()
        last_progress = loop.time()
        while True:
            items = self.log.read_after(stream_id, cursor)
            for item in items:
                cursor = item.sequence
                yield item
                if item.delta.is_terminal:
                    return

            if items:
                last_progress = loop.time()
            elif loop.time() - last_progress > self.inactivity_timeout:
                logger.warning(
                    f"Stopped tailing stream {stream_id}: no progress for "
                    f"{self.inactivity_timeout}s"
                )
                return

            await asyncio.sleep(self.poll_interval)
