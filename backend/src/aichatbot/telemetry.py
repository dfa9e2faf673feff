"""
LLM tracing for the AI Chatbot backend.

OpenLIT instruments the Anthropic and OpenAI SDKs, so every model call made
by a turn (chat steps, titles, artifacts, suggestions) is exported as an
OpenTelemetry span to the configured OTLP endpoint.
"""

import logging
from typing import Optional

import openlit

from aichatbot.config import Settings, settings

logger = logging.getLogger(__name__)


def parse_otlp_headers(raw: str) -> dict[str, str]:
    """Parse ``key=value,key2=value2`` as used by OTEL_EXPORTER_OTLP_HEADERS."""
    headers: dict[str, str] = {}
    for pair in raw.split(","):
        if not pair.strip():
            continue
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            logger.warning(f"Ignoring malformed OTLP header: {pair.strip()!r}")
            continue
        headers[key.strip()] = value.strip()
    return headers


def setup_telemetry(config: Optional[Settings] = None) -> bool:
    """
    Initialize OpenLIT tracing when an OTLP endpoint is configured.

    Args:
        config: Settings to read (defaults to the global settings)

    Returns:
        True if tracing was initialized
    """
    config = config or settings
    if not config.otel_exporter_otlp_endpoint:
        logger.info("LLM tracing disabled (OTEL_EXPORTER_OTLP_ENDPOINT not set)")
        return False

    openlit.init(
        otlp_endpoint=config.otel_exporter_otlp_endpoint,
        otlp_headers=parse_otlp_headers(config.otel_exporter_otlp_headers) or None,
        application_name=config.otel_service_name,
        environment=config.environment,
    )
    logger.info(
        f"LLM tracing enabled: service {config.otel_service_name} "
        f"exporting to {config.otel_exporter_otlp_endpoint}"
    )
    return True
