"""Artifact kind vocabulary route."""

from fastapi import APIRouter, Depends

from aichatbot.api.deps import get_orchestrator
from aichatbot.api.schemas import ArtifactKindsResponse
from aichatbot.chat import ChatOrchestrator

router = APIRouter()


@router.get("/kinds", response_model=ArtifactKindsResponse)
def list_kinds(
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> ArtifactKindsResponse:
    """Document kinds and the content delta types each emits."""
    return ArtifactKindsResponse(kinds=orchestrator.handlers.vocabulary())
