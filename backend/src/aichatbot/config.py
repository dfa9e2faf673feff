"""
AI Chatbot Configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for AI Chatbot logs.

    Follows XDG Base Directory Specification:
    - Uses $XDG_STATE_HOME/aichatbot if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/aichatbot if not set
    - Returns relative path ./logs if HOME not available (dev/testing)

    Returns:
        str: Path to state/logs directory
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "aichatbot" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "aichatbot" / "logs")

    # Fallback for development/testing environments without HOME
    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    postgres_db: str = "aichatbot"
    postgres_user: str = "aichatbot"
    postgres_password: str = "aichatbot_dev_password"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    db_pool_size: int = 5
    db_pool_max_overflow: int = 5
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct database URL from components (DATABASE_URL wins if set)."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Inference providers
    inference_provider: str = "anthropic"  # anthropic or openai
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    chat_model_id: str = "claude-3-haiku-20240307"
    reasoning_model_id: str = "claude-3-sonnet-20240229"
    title_model_id: str = "claude-3-haiku-20240307"
    artifact_model_id: str = "claude-3-haiku-20240307"
    openai_image_model: str = "dall-e-3"
    reasoning_tag: str = "think"  # Tag wrapping reasoning text in model output
    max_tokens: int = 4096

    # Streaming
    stream_inactivity_timeout_seconds: float = 120.0  # Finalize runs with no progress
    stream_retention_hours: int = 24  # Older stream records are ignored for resume
    stream_poll_interval_seconds: float = 0.5  # Log tail polling for remote streams
    stream_log_flush_interval_seconds: float = 0.05  # Batching window for log commits
    stream_log_batch_size: int = 200  # Max deltas per log commit
    stream_log_offload: bool = True  # Commit log batches on a worker thread
    chat_max_steps: int = 5  # Maximum model/tool round trips per turn

    # Entitlements
    guest_max_messages_per_day: int = 20
    regular_max_messages_per_day: int = 100

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True
    cors_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"

    # LLM tracing (OpenLIT over OpenTelemetry); disabled without an endpoint
    otel_exporter_otlp_endpoint: str = ""
    otel_exporter_otlp_headers: str = ""  # Comma-separated key=value pairs
    otel_service_name: str = "ai-chatbot"

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # XDG-compliant log directory (defaults to XDG state dir if empty)
    log_format: str = "standard"  # standard or json
    log_console_enabled: bool = True  # Enable console (stdout/stderr) logging
    log_file_enabled: bool = True  # Enable file-based logging
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5  # Keep 5 backup files

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
