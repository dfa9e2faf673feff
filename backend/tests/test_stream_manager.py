"""
Tests for StreamManager: starting, stopping and resuming streams.
"""

import asyncio
import uuid
from contextlib import contextmanager
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from aichatbot.db.repositories import ConversationRepository
from aichatbot.exceptions import RegistrationFailure, ResumeNotFound, StreamConflict
from aichatbot.models.db import StreamRecord
from aichatbot.streaming import (
    Delta,
    DeltaType,
    ResumableStreamContext,
    StreamManager,
    StreamState,
)
from aichatbot.utils.timeutils import utcnow


@pytest.fixture
def manager(session_scope) -> StreamManager:
    return StreamManager(
        session_scope, inactivity_timeout=1.0, retention_hours=24, poll_interval=0.01
    )


async def collect(iterator) -> list:
    return [item async for item in iterator]


def texts(items) -> list:
    return [i.delta.content for i in items if i.delta.type == DeltaType.TEXT]


def slow_producer(*chunks: str, delay: float = 0.01):
    async def produce(ctx):
        for chunk in chunks:
            await asyncio.sleep(delay)
            ctx.write(Delta(DeltaType.TEXT, chunk))

    return produce


class TestStartAndResume:
    """Tests for the three resumption paths."""

    def test_start_or_resume_streams_new_run(self, manager, conversation):
        async def main():
            iterator = manager.start_or_resume(
                conversation.id, produce=slow_producer("a", "b")
            )
            return await collect(iterator)

        items = asyncio.run(main())
        assert texts(items) == ["a", "b"]
        assert items[-1].delta.type == DeltaType.FINISH

    def test_resume_live_stream_from_cursor(self, manager, conversation):
        async def main():
            first_written = asyncio.Event()
            gate = asyncio.Event()

            async def produce(ctx):
                ctx.write(Delta(DeltaType.TEXT, "one"))
                first_written.set()
                await gate.wait()
                ctx.write(Delta(DeltaType.TEXT, "two"))

            context = manager.start_stream(conversation.id, produce)
            await first_written.wait()
            assert manager.active_context(conversation.id) is context

            iterator = manager.resume(conversation.id, cursor=1)
            gate.set()
            return await collect(iterator)

        items = asyncio.run(main())
        assert [i.sequence for i in items] == [2, 3]
        assert texts(items) == ["two"]

    def test_resume_finished_stream_replays_log(self, manager, conversation):
        async def main():
            context = manager.start_stream(conversation.id, slow_producer("x", "y"))
            await context.wait_closed()
            await asyncio.sleep(0.01)
            assert manager.get_context(context.stream_id) is None
            return await collect(manager.resume(conversation.id, cursor=1))

        items = asyncio.run(main())
        assert [i.sequence for i in items] == [2, 3]
        assert texts(items) == ["y"]

    def test_resume_picks_latest_stream(self, manager, conversation):
        async def main():
            first = manager.start_stream(conversation.id, slow_producer("first"))
            await first.wait_closed()
            second = manager.start_stream(conversation.id, slow_producer("second"))
            await second.wait_closed()
            await asyncio.sleep(0.01)
            latest = await collect(manager.resume(conversation.id))
            older = await collect(
                manager.resume(conversation.id, stream_id=first.stream_id)
            )
            return latest, older

        latest, older = asyncio.run(main())
        assert texts(latest) == ["second"]
        assert texts(older) == ["first"]

    def test_resume_tails_stream_owned_elsewhere(self, manager, conversation):
        """A stream running outside this manager is followed through its log."""

        async def main():
            stream_id = manager.registry.record_stream_start(conversation.id)
            remote = ResumableStreamContext(stream_id, conversation.id, manager.log)
            run = asyncio.create_task(remote.run(slow_producer("r1", "r2", "r3")))
            await asyncio.sleep(0)
            items = await collect(manager.resume(conversation.id))
            await run
            return items

        items = asyncio.run(main())
        assert texts(items) == ["r1", "r2", "r3"]
        assert [i.sequence for i in items] == [1, 2, 3, 4]

    def test_tail_gives_up_after_inactivity(self, session_scope, conversation):
        manager = StreamManager(
            session_scope, inactivity_timeout=0.05, poll_interval=0.01
        )
        manager.registry.record_stream_start(conversation.id)

        items = asyncio.run(collect(manager.resume(conversation.id)))
        assert items == []

    def test_resume_unknown_conversation_raises(self, manager):
        with pytest.raises(ResumeNotFound):
            manager.resume(uuid.uuid4())

    def test_resume_foreign_stream_id_raises(self, manager, conversation):
        manager.registry.record_stream_start(conversation.id)
        with pytest.raises(ResumeNotFound):
            manager.resume(conversation.id, stream_id=uuid.uuid4())

    def test_expired_stream_is_not_resumable(self, manager, conversation, db_session):
        stream_id = manager.registry.record_stream_start(conversation.id)
        record = db_session.get(StreamRecord, stream_id)
        record.created_at = utcnow() - timedelta(hours=48)
        db_session.flush()

        with pytest.raises(ResumeNotFound):
            manager.resume(conversation.id)
        assert manager.registry.prune() == 1


class TestStopAndShutdown:
    """Tests for cancelling running streams."""

    def test_stop_active_conversation(self, manager, conversation):
        async def main():
            started = asyncio.Event()

            async def produce(ctx):
                ctx.write(Delta(DeltaType.TEXT, "..."))
                started.set()
                await asyncio.Event().wait()

            context = manager.start_stream(conversation.id, produce)
            await started.wait()
            assert manager.stop(conversation.id) is True
            await context.wait_closed()
            return context

        context = asyncio.run(main())
        assert context.state == StreamState.ERRORED
        assert manager.stop(conversation.id) is False
        assert manager.log.read_after(context.stream_id)[-1].delta.content == {
            "finishReason": "stopped"
        }

    def test_shutdown_finalizes_running_streams(self, manager, conversation):
        async def main():
            started = asyncio.Event()

            async def produce(ctx):
                started.set()
                await asyncio.Event().wait()

            context = manager.start_stream(conversation.id, produce)
            await started.wait()
            await manager.shutdown()
            return context

        context = asyncio.run(main())
        items = manager.log.read_after(context.stream_id)
        assert items[-1].delta.content == {"finishReason": "shutdown"}
        assert context.state == StreamState.ERRORED


class TestOneActiveStreamPerConversation:
    """A conversation never has two running streams in one process."""

    def test_second_start_is_rejected(self, manager, conversation, db_session):
        async def main():
            started = asyncio.Event()

            async def produce(ctx):
                started.set()
                await asyncio.Event().wait()

            first = manager.start_stream(conversation.id, produce)
            await started.wait()
            with pytest.raises(StreamConflict) as exc_info:
                manager.start_stream(conversation.id, slow_producer("late"))
            assert exc_info.value.stream_id == first.stream_id
            assert manager.active_context(conversation.id) is first
            manager.stop(conversation.id)
            await first.wait_closed()

        asyncio.run(main())
        records = (
            db_session.query(StreamRecord)
            .filter(StreamRecord.conversation_id == conversation.id)
            .all()
        )
        assert len(records) == 1

    def test_new_turn_after_previous_finished(self, manager, conversation):
        async def main():
            first = manager.start_stream(conversation.id, slow_producer("a"))
            await first.wait_closed()
            iterator = manager.start_or_resume(
                conversation.id, produce=slow_producer("b")
            )
            return await collect(iterator)

        assert texts(asyncio.run(main())) == ["b"]

    def test_other_conversations_unaffected(
        self, manager, conversation, db_session, user_id
    ):
        other = ConversationRepository(db_session).create(
            id=uuid.uuid4(), user_id=user_id, title="Other"
        )
        db_session.flush()

        async def main():
            started = asyncio.Event()

            async def produce(ctx):
                started.set()
                await asyncio.Event().wait()

            running = manager.start_stream(conversation.id, produce)
            await started.wait()
            items = await collect(
                manager.start_or_resume(other.id, produce=slow_producer("x"))
            )
            await manager.shutdown()
            return running, items

        running, items = asyncio.run(main())
        assert texts(items) == ["x"]
        assert running.state == StreamState.ERRORED


class TestRegistrationFailure:
    """Registration must succeed before any production starts."""

    def test_producer_never_runs(self, conversation):
        @contextmanager
        def failing_scope():
            raise OperationalError("INSERT INTO streams", {}, Exception("db down"))
            yield

        manager = StreamManager(failing_scope)
        called = []

        async def produce(ctx):
            called.append(ctx)

        async def main():
            with pytest.raises(RegistrationFailure):
                manager.start_stream(conversation.id, produce)
            await asyncio.sleep(0)

        asyncio.run(main())
        assert called == []
