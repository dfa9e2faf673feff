"""
Startup dependency checks for the AI Chatbot backend.

Validates critical dependencies before the application starts serving requests.
Fails fast with clear, actionable error messages when requirements aren't met.
"""

import logging
import sys
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import inspect, text

from aichatbot.config import settings
from aichatbot.db.connection import SessionLocal, engine
from aichatbot.models.db import Base
from aichatbot.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class StartupMetrics:
    """Metrics collected during startup checks."""

    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None
    checks_passed: bool = False


# Global startup metrics (populated during startup)
startup_metrics = StartupMetrics(started_at=utcnow())


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_database_connection() -> None:
    """
    Verify the database is accessible and responsive.

    Raises:
        StartupCheckError: If database connection fails
    """
    try:
        with SessionLocal() as session:
            result = session.execute(text("SELECT 1")).scalar()
            if result != 1:
                raise StartupCheckError(
                    "Database query returned unexpected result",
                    "Database may be corrupted or misconfigured",
                )
    except StartupCheckError:
        raise
    except Exception as e:
        error_str = str(e).lower()

        if "could not connect" in error_str or "connection refused" in error_str:
            hint = (
                "PostgreSQL is not running.\n"
                "  - Start with Docker: docker-compose up -d"
            )
        elif "authentication failed" in error_str or "password" in error_str:
            hint = (
                "Database authentication failed.\n"
                "  - Check credentials in .env file\n"
                f"  - Current user: {settings.postgres_user}\n"
                f"  - Current database: {settings.postgres_db}"
            )
        elif "database" in error_str and "does not exist" in error_str:
            hint = (
                f"Database '{settings.postgres_db}' does not exist.\n"
                f"  - Create it: createdb {settings.postgres_db}"
            )
        else:
            hint = f"Check your database configuration in .env\nError: {str(e)}"

        raise StartupCheckError(
            f"Cannot connect to database\n"
            f"Host: {settings.postgres_host}:{settings.postgres_port}\n"
            f"Database: {settings.postgres_db}",
            hint,
        ) from e


def check_database_schema() -> None:
    """
    Verify every table of the schema exists.

    Raises:
        StartupCheckError: If tables are missing
    """
    existing = set(inspect(engine).get_table_names())
    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        raise StartupCheckError(
            f"Database schema is incomplete. Missing tables: {', '.join(missing)}",
            "Create the schema with: aichatbot init-db",
        )


def check_provider_configuration() -> None:
    """
    Check that the configured inference provider has an API key.

    Chat endpoints answer 503 without one, so a missing key only warns.
    """
    provider = settings.inference_provider
    key = (
        settings.openai_api_key if provider == "openai" else settings.anthropic_api_key
    )
    if not key:
        logger.warning(
            f"No API key configured for inference provider '{provider}'; "
            "chat endpoints will be unavailable"
        )


def run_all_startup_checks() -> None:
    """
    Execute all startup dependency checks.

    Raises:
        SystemExit: After printing the failed check
    """
    startup_start = time.time()

    checks = [
        ("Database Connection", check_database_connection),
        ("Database Schema", check_database_schema),
        ("Provider Configuration", check_provider_configuration),
    ]

    print("\n" + "=" * 70)
    print("Starting AI Chatbot Backend - Running Startup Checks")
    print("=" * 70 + "\n")

    for check_name, check_func in checks:
        check_start = time.time()
        try:
            print(f"  Checking {check_name}...", end=" ", flush=True)
            check_func()
            print(f"PASS ({(time.time() - check_start) * 1000:.1f}ms)")
        except StartupCheckError as e:
            print(f"FAIL ({(time.time() - check_start) * 1000:.1f}ms)")
            print(str(e))
            sys.exit(1)

    startup_metrics.completed_at = utcnow()
    startup_metrics.total_duration_ms = (time.time() - startup_start) * 1000
    startup_metrics.checks_passed = True

    print("\n" + "=" * 70)
    print(
        f"All startup checks passed - Server is ready ({startup_metrics.total_duration_ms:.1f}ms)"
    )
    print("=" * 70 + "\n")
