"""Suggestion API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from aichatbot.api.auth import AuthContext, get_auth_context
from aichatbot.api.schemas import SuggestionResponse
from aichatbot.db.connection import get_db
from aichatbot.db.repositories import SuggestionRepository

router = APIRouter()


@router.get("", response_model=list[SuggestionResponse])
def list_suggestions(
    document_id: UUID = Query(...),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[SuggestionResponse]:
    suggestions = SuggestionRepository(session).get_by_document(document_id)
    if suggestions and suggestions[0].user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return [SuggestionResponse.model_validate(s) for s in suggestions]


@router.post("/{suggestion_id}/resolve", response_model=SuggestionResponse)
def resolve_suggestion(
    suggestion_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> SuggestionResponse:
    repo = SuggestionRepository(session)
    suggestion = repo.get(suggestion_id)
    if suggestion is None:
        raise HTTPException(status_code=404, detail="Suggestion not found")
    if suggestion.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return SuggestionResponse.model_validate(repo.resolve(suggestion_id))
