"""
AI Chatbot FastAPI Application.

Main API application serving chat turns as resumable event streams, plus
conversation, vote, document and suggestion endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aichatbot import __version__
from aichatbot.ai import ModelRegistry
from aichatbot.api.routes import artifacts, chat, document, suggestions, vote
from aichatbot.artifacts import SuggestionGenerator, build_default_registry
from aichatbot.chat import ChatOrchestrator
from aichatbot.config import settings
from aichatbot.db import SessionScope
from aichatbot.db.connection import db_session
from aichatbot.logging_config import setup_logging
from aichatbot.startup import run_all_startup_checks
from aichatbot.streaming import StreamManager
from aichatbot.telemetry import setup_telemetry

logger = logging.getLogger(__name__)


def build_orchestrator(session_scope: SessionScope) -> Optional[ChatOrchestrator]:
    """
    Wire models, document handlers and suggestions from settings.

    Returns:
        The orchestrator, or None if no inference provider is configured
    """
    try:
        models = ModelRegistry.from_settings(settings)
    except ValueError as e:
        logger.warning(f"Chat is unavailable: {e}")
        return None
    return ChatOrchestrator(
        models=models,
        handlers=build_default_registry(models, session_scope),
        suggestions=SuggestionGenerator(models, session_scope),
        session_scope=session_scope,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI application.

    Runs startup checks before the application starts serving requests,
    then owns the stream manager: running streams are finalized on shutdown.
    """
    # Initialize logging first
    setup_logging(context="api")
    setup_telemetry()

    logger.info("Running startup checks...")
    run_all_startup_checks()
    logger.info("Startup checks passed")

    app.state.stream_manager = StreamManager(db_session)
    app.state.orchestrator = build_orchestrator(db_session)
    logger.info("Application startup complete")

    yield

    logger.info("Application shutdown initiated...")
    try:
        await app.state.stream_manager.shutdown()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)
    logger.info("Application shutdown complete")


app = FastAPI(
    lifespan=lifespan,
    title="AI Chatbot API",
    description="Chat backend with resumable streaming and document artifacts",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint - API health check."""
    return {
        "status": "ok",
        "message": "AI Chatbot API is running",
        "version": __version__,
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    from aichatbot.db.connection import check_connection

    db_status = "healthy" if check_connection() else "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
    }


app.include_router(chat.router, prefix="/api", tags=["chat"])
app.include_router(vote.router, prefix="/api", tags=["vote"])
app.include_router(document.router, prefix="/api/document", tags=["document"])
app.include_router(suggestions.router, prefix="/api/suggestions", tags=["suggestions"])
app.include_router(artifacts.router, prefix="/api/artifacts", tags=["artifacts"])
