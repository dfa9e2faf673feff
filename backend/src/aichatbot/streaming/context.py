"""
Resumable stream context.

One context exists per production run. The producer pushes deltas into it;
each delta gets its sequence number, joins the in-memory history and is
broadcast to the attached subscribers in the same synchronous step, so the
order every subscriber observes is the order of the log.

While a run is driven by run(), a write-behind task commits buffered deltas
to the durable log in batches, on a worker thread unless offloading is
turned off. The run does not complete, and wait_closed() does not return,
until every delta is in the log. A context used without run() writes
through to the log synchronously.

Subscribers attach at any time with a cursor (the last sequence number they
have seen). Attaching queues the history after the cursor and registers the
subscriber without yielding to the event loop in between, so no delta can
be written between the replay and the live phase: there is no gap and no
duplicate at the splice.
"""

import asyncio
import enum
import logging
import uuid
from typing import Awaitable, Callable, Optional

from aichatbot.config import settings
from aichatbot.exceptions import (
    ProducerFailure,
    StreamClosedError,
    SubscriberDisconnect,
)
from aichatbot.streaming.deltas import Delta, DeltaEncoder, SequencedDelta
from aichatbot.streaming.log import DeltaLog

logger = logging.getLogger(__name__)

_END = object()


class StreamState(str, enum.Enum):
    """Lifecycle of a production run."""

    PENDING = "pending"  # Registered, nothing written yet
    STREAMING = "streaming"  # At least one delta written
    FINISHED = "finished"  # Terminal delta written
    ERRORED = "errored"  # Error + terminal delta written

    @property
    def is_terminal(self) -> bool:
        return self in (StreamState.FINISHED, StreamState.ERRORED)


class Subscription:
    """
    One reader's ordered view of a stream.

    Iterating yields SequencedDelta objects with strictly increasing
    sequence numbers greater than the starting cursor, and stops at end of
    stream. Closing detaches the reader without affecting the producer.
    """

    def __init__(
        self,
        stream_id: uuid.UUID,
        cursor: int = 0,
        on_close: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.stream_id = stream_id
        self.cursor = cursor
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    def push(self, item: SequencedDelta) -> None:
        """
        Raises:
            SubscriberDisconnect: If the reader already closed this subscription
        """
        if self._closed:
            raise SubscriberDisconnect(f"Subscriber of {self.stream_id} is gone")
        self._queue.put_nowait(item)

    def end(self) -> None:
        self._queue.put_nowait(_END)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> SequencedDelta:
        while not self._closed:
            item = await self._queue.get()
            if item is _END:
                self.close()
                break
            if item.sequence <= self.cursor:
                continue
            self.cursor = item.sequence
            return item
        raise StopAsyncIteration

    def close(self) -> None:
        """Detach from the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END)
        if self._on_close is not None:
            self._on_close(self)

    async def aclose(self) -> None:
        """Same as close(); mirrors the async generator interface."""
        self.close()


Producer = Callable[["ResumableStreamContext"], Awaitable[None]]


class ResumableStreamContext:
    """
    Write-behind fan-out for a single stream id.

    Example:
        >>> context = ResumableStreamContext(stream_id, conversation_id, log)
        >>> task = asyncio.create_task(context.run(produce))
        >>> async for item in context.subscribe(cursor=0):
        ...     send(item)
    """

    def __init__(
        self,
        stream_id: uuid.UUID,
        conversation_id: uuid.UUID,
        log: DeltaLog,
        inactivity_timeout: float = 120.0,
        flush_interval: Optional[float] = None,
        batch_size: Optional[int] = None,
        offload: Optional[bool] = None,
    ):
        """
        Args:
            stream_id: Registered stream id
            conversation_id: Conversation the stream belongs to
            log: Durable delta log
            inactivity_timeout: Seconds without progress before the run is
                finalized as errored
            flush_interval: Seconds buffered deltas wait for more to join
                their batch (defaults to settings)
            batch_size: Most deltas committed in one transaction (defaults to
                settings)
            offload: Commit batches on a worker thread instead of the event
                loop (defaults to settings)
        """
        self.stream_id = stream_id
        self.conversation_id = conversation_id
        self.log = log
        self.inactivity_timeout = inactivity_timeout
        self.flush_interval = (
            flush_interval
            if flush_interval is not None
            else settings.stream_log_flush_interval_seconds
        )
        self.batch_size = max(
            1, batch_size if batch_size is not None else settings.stream_log_batch_size
        )
        self.offload = offload if offload is not None else settings.stream_log_offload
        self.state = StreamState.PENDING
        self.failure: Optional[ProducerFailure] = None
        self._history: list[SequencedDelta] = []
        self._pending: list[SequencedDelta] = []
        self._subscribers: set[Subscription] = set()
        self._producer: Optional[asyncio.Task] = None
        self._writer: Optional[asyncio.Task] = None
        self._draining = False
        self._log_failed = False
        self._stop_requested = False
        self._progress = asyncio.Event()
        self._buffered = asyncio.Event()
        self._closed = asyncio.Event()

    @property
    def sequence(self) -> int:
        """Sequence number of the last written delta (0 if none)."""
        return len(self._history)

    @property
    def is_closed(self) -> bool:
        return self.state.is_terminal

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # Producer side

    def write(self, delta: Delta) -> int:
        """
        Record a delta and broadcast it.

        Returns:
            The delta's sequence number

        Raises:
            StreamClosedError: If the stream already reached a terminal state
        """
        if self.is_closed:
            raise StreamClosedError(self.stream_id)
        sequence = self._append(delta)
        if delta.is_terminal:
            self._close(StreamState.FINISHED)
        return sequence

    def _append(self, delta: Delta) -> int:
        item = SequencedDelta(sequence=len(self._history) + 1, delta=delta)
        if self._writer is not None:
            self._pending.append(item)
            self._buffered.set()
        elif not self._log_failed:
            self.log.append(self.stream_id, item.sequence, delta)
        self._history.append(item)
        if self.state == StreamState.PENDING:
            self.state = StreamState.STREAMING

        for subscriber in list(self._subscribers):
            try:
                subscriber.push(item)
            except SubscriberDisconnect:
                self._detach(subscriber)
        self._progress.set()
        return item.sequence

    def fail(self, message: str, reason: str = "error") -> None:
        """Write an error delta and the terminal delta, ending as ERRORED."""
        if self.is_closed:
            return
        try:
            for delta in DeltaEncoder.error_sequence(message, reason):
                self._append(delta)
        except Exception:
            # The log itself is failing; readers still need their end signal
            logger.exception(f"Could not persist terminal deltas for {self.stream_id}")
        self._close(StreamState.ERRORED)

    def _close(self, state: StreamState) -> None:
        self.state = state
        for subscriber in list(self._subscribers):
            subscriber.end()
        self._subscribers.clear()
        if self._writer is None:
            self._closed.set()
        logger.info(
            f"Stream {self.stream_id} closed as {state.value} "
            f"after {self.sequence} delta(s)"
        )

    # Persistence

    async def _write_behind(self) -> None:
        """Commit buffered deltas in batches until the run drains."""
        while True:
            await self._buffered.wait()
            if not self._draining:
                # Let the rest of a burst of tokens join this batch
                await asyncio.sleep(self.flush_interval)
            self._buffered.clear()
            batch, self._pending = self._pending, []
            try:
                await self._store(batch)
            except Exception as e:
                self._abandon_write_behind(e)
                return
            if self._draining and not self._pending:
                self._closed.set()
                return

    async def _store(self, batch: list[SequencedDelta]) -> None:
        for start in range(0, len(batch), self.batch_size):
            chunk = batch[start : start + self.batch_size]
            if self.offload:
                await asyncio.to_thread(self.log.append_many, self.stream_id, chunk)
            else:
                self.log.append_many(self.stream_id, chunk)

    def _abandon_write_behind(self, error: Exception) -> None:
        logger.exception(f"Could not persist deltas of stream {self.stream_id}")
        # Readers are still served from memory; the log stays incomplete
        self._log_failed = True
        self._writer = None
        self._pending.clear()
        if self.is_closed:
            self._closed.set()
            return
        self.failure = ProducerFailure(str(error), self.stream_id)
        self.fail("An error occurred while saving the response.")
        if self._producer is not None:
            self._producer.cancel()

    async def _drain(self) -> None:
        """Wait until every written delta is committed, then mark closed."""
        self._draining = True
        self._buffered.set()
        writer = self._writer
        if writer is not None:
            # A cancelled run must not take the final commit down with it
            await asyncio.shield(writer)
        self._writer = None
        self._closed.set()

    # Subscriber side

    def subscribe(self, cursor: int = 0) -> Subscription:
        """
        Attach a reader that has already seen everything up to ``cursor``.

        The history after the cursor is queued first, then live deltas
        follow. A closed stream yields its tail and ends immediately.
        """
        subscription = Subscription(self.stream_id, cursor, on_close=self._detach)
        for item in self._history[cursor:]:
            subscription.push(item)

        if self.is_closed:
            subscription.end()
        else:
            self._subscribers.add(subscription)
            logger.debug(
                f"Subscriber attached to {self.stream_id} at cursor {cursor} "
                f"({len(self._subscribers)} live)"
            )
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.discard(subscription)
            logger.debug(f"Subscriber detached from {self.stream_id}")

    # Lifecycle

    def stop(self) -> bool:
        """
        Cancel the producer (user pressed stop).

        Returns:
            True if a running producer was cancelled
        """
        if self._producer is None or self._producer.done():
            return False
        self._stop_requested = True
        self._producer.cancel()
        logger.info(f"Stop requested for stream {self.stream_id}")
        return True

    async def wait_closed(self) -> None:
        """Wait until the stream is terminal and fully written to the log."""
        await self._closed.wait()

    async def run(self, produce: Producer) -> StreamState:
        """
        Drive a producer to completion and finalize the stream.

        A producer that returns normally gets a terminal ``finish`` delta
        appended. A producer that raises, is stopped, or makes no progress
        for ``inactivity_timeout`` seconds ends the stream as ERRORED.

        Returns:
            The terminal state, once every delta is in the log
        """
        self._writer = asyncio.create_task(
            self._write_behind(), name=f"stream-writer-{self.stream_id}"
        )
        self._producer = asyncio.create_task(produce(self))
        try:
            await self._supervise()
        except asyncio.CancelledError:
            self._producer.cancel()
            await asyncio.gather(self._producer, return_exceptions=True)
            self.fail("Stream interrupted by server shutdown", reason="shutdown")
            await self._drain()
            raise
        await self._drain()
        return self.state

    async def _supervise(self) -> None:
        assert self._producer is not None
        while not self._producer.done():
            self._progress.clear()
            waiter = asyncio.ensure_future(self._progress.wait())
            try:
                done, _ = await asyncio.wait(
                    {self._producer, waiter},
                    timeout=self.inactivity_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                waiter.cancel()

            if not done:
                logger.warning(
                    f"Stream {self.stream_id} made no progress for "
                    f"{self.inactivity_timeout}s, finalizing"
                )
                self._producer.cancel()
                await asyncio.gather(self._producer, return_exceptions=True)
                self.fail(
                    "The response timed out before it was completed.",
                    reason="timeout",
                )
                return

        self._settle(self._producer)

    def _settle(self, task: asyncio.Task) -> None:
        if task.cancelled() or (self._stop_requested and not self.is_closed):
            self.fail("The response was stopped.", reason="stopped")
            return

        exc = task.exception()
        if exc is not None:
            self.failure = ProducerFailure(str(exc), self.stream_id)
            logger.error(f"Producer for stream {self.stream_id} failed", exc_info=exc)
            self.fail("An error occurred while generating the response.")
            return

        if not self.is_closed:
            try:
                self.write(DeltaEncoder.finish())
            except Exception as e:
                logger.exception(f"Could not finish stream {self.stream_id}")
                self.failure = ProducerFailure(str(e), self.stream_id)
                self.fail("An error occurred while saving the response.")
