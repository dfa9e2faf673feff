"""
Tests for the stream registry and the durable delta log.
"""

import uuid
from contextlib import contextmanager

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from aichatbot.exceptions import RegistrationFailure
from aichatbot.streaming import Delta, DeltaLog, DeltaType, StreamRegistry


class TestStreamRegistry:
    def test_record_and_list_oldest_first(self, session_scope, conversation):
        registry = StreamRegistry(session_scope)
        first = registry.record_stream_start(conversation.id)
        second = registry.record_stream_start(conversation.id)

        assert registry.list_stream_ids(conversation.id) == [first, second]
        assert registry.latest_stream_id(conversation.id) == second

    def test_unknown_conversation_has_no_streams(self, session_scope):
        registry = StreamRegistry(session_scope)
        assert registry.list_stream_ids(uuid.uuid4()) == []
        assert registry.latest_stream_id(uuid.uuid4()) is None

    def test_storage_failure_raises_registration_failure(self):
        @contextmanager
        def failing_scope():
            raise OperationalError("INSERT INTO streams", {}, Exception("db down"))
            yield

        conversation_id = uuid.uuid4()
        with pytest.raises(RegistrationFailure) as exc_info:
            StreamRegistry(failing_scope).record_stream_start(conversation_id)

        assert exc_info.value.conversation_id == conversation_id
        assert "db down" in exc_info.value.reason


class TestDeltaLog:
    @pytest.fixture
    def stream_id(self, session_scope, conversation) -> uuid.UUID:
        return StreamRegistry(session_scope).record_stream_start(conversation.id)

    def test_read_after_cursor(self, session_scope, stream_id):
        log = DeltaLog(session_scope)
        for sequence, text in enumerate(["a", "b", "c"], start=1):
            log.append(stream_id, sequence, Delta(DeltaType.TEXT, text))

        items = log.read_after(stream_id, 1)
        assert [i.sequence for i in items] == [2, 3]
        assert [i.delta.content for i in items] == ["b", "c"]
        assert log.last_sequence(stream_id) == 3
        assert not log.is_finished(stream_id)

    def test_structured_content_survives_storage(self, session_scope, stream_id):
        log = DeltaLog(session_scope)
        content = {"finishReason": "stop"}
        log.append(stream_id, 1, Delta(DeltaType.FINISH, content))

        assert log.read_after(stream_id)[0].delta == Delta(DeltaType.FINISH, content)
        assert log.is_finished(stream_id)

    def test_sequence_numbers_are_unique(self, session_scope, stream_id):
        log = DeltaLog(session_scope)
        log.append(stream_id, 1, Delta(DeltaType.TEXT, "a"))
        with pytest.raises(IntegrityError):
            log.append(stream_id, 1, Delta(DeltaType.TEXT, "again"))

    def test_empty_log(self, session_scope, stream_id):
        log = DeltaLog(session_scope)
        assert log.read_after(stream_id) == []
        assert log.last_sequence(stream_id) == 0
