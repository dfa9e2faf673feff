"""
Tests for CLI commands.
"""

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from aichatbot.cli import app
from aichatbot.streaming import Delta, DeltaEncoder, DeltaLog, DeltaType, StreamRegistry

# Disable Rich formatting in tests using NO_COLOR environment variable
runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})


@pytest.fixture(autouse=True)
def cli_database(session_scope):
    """Point CLI commands at the test session and keep logging quiet."""
    with patch("aichatbot.db.connection.db_session", session_scope), patch(
        "aichatbot.cli.setup_logging"
    ):
        yield


@pytest.fixture
def stream_id(session_scope, conversation) -> uuid.UUID:
    stream_id = StreamRegistry(session_scope).record_stream_start(conversation.id)
    log = DeltaLog(session_scope)
    log.append(stream_id, 1, Delta(DeltaType.TEXT, "Hello"))
    log.append(stream_id, 2, DeltaEncoder.finish())
    return stream_id


class TestHelp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])

        assert "serve" in result.output
        assert "replay" in result.output


class TestServeCommand:
    def test_serve_runs_uvicorn(self):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(
            "aichatbot.api.app:app", host="0.0.0.0", port=9000, reload=False
        )


class TestInitDbCommand:
    def test_init_db_creates_tables(self):
        with patch("aichatbot.db.connection.init_db") as mock_init:
            result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        mock_init.assert_called_once()
        assert "Database schema created" in result.stdout


class TestStreamsCommand:
    def test_lists_streams(self, conversation, stream_id):
        result = runner.invoke(app, ["streams", str(conversation.id)])

        assert result.exit_code == 0
        assert str(stream_id) in result.stdout
        assert "yes" in result.stdout

    def test_no_streams(self, conversation):
        result = runner.invoke(app, ["streams", str(conversation.id)])

        assert result.exit_code == 0
        assert "No resumable streams" in result.stdout

    def test_invalid_uuid(self):
        result = runner.invoke(app, ["streams", "not-a-uuid"])

        assert result.exit_code == 1
        assert "Invalid conversation id" in result.stdout


class TestReplayCommand:
    def test_replays_all_deltas(self, stream_id):
        result = runner.invoke(app, ["replay", str(stream_id)])

        assert result.exit_code == 0
        assert "text-delta" in result.stdout
        assert '"Hello"' in result.stdout
        assert "finish" in result.stdout

    def test_replays_after_cursor(self, stream_id):
        result = runner.invoke(app, ["replay", str(stream_id), "--cursor", "1"])

        assert result.exit_code == 0
        assert "Hello" not in result.stdout
        assert "finish" in result.stdout

    def test_nothing_after_cursor(self, stream_id):
        result = runner.invoke(app, ["replay", str(stream_id), "--cursor", "2"])

        assert result.exit_code == 0
        assert "No deltas after cursor" in result.stdout


class TestPruneStreamsCommand:
    def test_prunes_old_streams(self, db_session, conversation, stream_id):
        from aichatbot.models.db import StreamRecord
        from aichatbot.utils.timeutils import utcnow

        db_session.get(StreamRecord, stream_id).created_at = utcnow() - timedelta(
            hours=48
        )
        db_session.flush()

        result = runner.invoke(app, ["prune-streams", "--hours", "24"])

        assert result.exit_code == 0
        assert "Pruned 1 stream(s)" in result.stdout
        assert db_session.get(StreamRecord, stream_id) is None

    def test_keeps_recent_streams(self, stream_id):
        result = runner.invoke(app, ["prune-streams", "--hours", "24"])

        assert "Pruned 0 stream(s)" in result.stdout
