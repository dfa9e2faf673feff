"""
Tests for OpenLIT tracing setup.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from aichatbot.api.app import app
from aichatbot.config import Settings
from aichatbot.telemetry import parse_otlp_headers, setup_telemetry


class TestSetupTelemetry:
    def test_disabled_without_endpoint(self):
        config = Settings(_env_file=None, otel_exporter_otlp_endpoint="")

        with patch("aichatbot.telemetry.openlit.init") as mock_init:
            assert setup_telemetry(config) is False

        mock_init.assert_not_called()

    def test_initializes_openlit(self):
        config = Settings(
            _env_file=None,
            otel_exporter_otlp_endpoint="http://collector:4318",
            otel_exporter_otlp_headers="Authorization=Bearer abc, x-team=chat",
            environment="production",
        )

        with patch("aichatbot.telemetry.openlit.init") as mock_init:
            assert setup_telemetry(config) is True

        mock_init.assert_called_once_with(
            otlp_endpoint="http://collector:4318",
            otlp_headers={"Authorization": "Bearer abc", "x-team": "chat"},
            application_name="ai-chatbot",
            environment="production",
        )

    def test_no_headers(self):
        config = Settings(
            _env_file=None, otel_exporter_otlp_endpoint="http://collector:4318"
        )

        with patch("aichatbot.telemetry.openlit.init") as mock_init:
            setup_telemetry(config)

        assert mock_init.call_args.kwargs["otlp_headers"] is None

    def test_app_startup_sets_up_tracing(self):
        with patch("aichatbot.api.app.setup_telemetry") as mock_setup, patch(
            "aichatbot.api.app.run_all_startup_checks"
        ):
            with TestClient(app):
                pass

        mock_setup.assert_called_once_with()


class TestParseOtlpHeaders:
    def test_pairs(self):
        assert parse_otlp_headers("a=1,b=2") == {"a": "1", "b": "2"}

    def test_value_may_contain_equals(self):
        assert parse_otlp_headers("token=abc==") == {"token": "abc=="}

    def test_malformed_pairs_skipped(self):
        assert parse_otlp_headers("novalue, ,=x,k=v") == {"k": "v"}

    def test_empty(self):
        assert parse_otlp_headers("") == {}
