"""Dependencies resolving long-lived services from application state."""

from fastapi import HTTPException, Request, status

from aichatbot.chat import ChatOrchestrator
from aichatbot.streaming import StreamManager


def get_stream_manager(request: Request) -> StreamManager:
    return request.app.state.stream_manager


def get_orchestrator(request: Request) -> ChatOrchestrator:
    """
    Raises:
        HTTPException(503): If no inference provider is configured
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No inference provider is configured",
        )
    return orchestrator
