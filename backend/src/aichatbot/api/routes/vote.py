"""Vote API routes."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from aichatbot.api.auth import AuthContext, get_auth_context
from aichatbot.api.schemas import VoteRequest, VoteResponse
from aichatbot.db.connection import get_db
from aichatbot.db.repositories import ConversationRepository, VoteRepository

router = APIRouter()


def _check_owner(session: Session, conversation_id: UUID, auth: AuthContext) -> None:
    conversation = ConversationRepository(session).get(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if conversation.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")


@router.get("/vote", response_model=list[VoteResponse])
def list_votes(
    conversation_id: UUID = Query(...),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[VoteResponse]:
    _check_owner(session, conversation_id, auth)
    votes = VoteRepository(session).get_by_conversation(conversation_id)
    return [VoteResponse.model_validate(v) for v in votes]


@router.patch("/vote", response_model=VoteResponse)
def vote_message(
    body: VoteRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> VoteResponse:
    """Up- or down-vote a message; voting again overwrites."""
    _check_owner(session, body.conversation_id, auth)
    vote = VoteRepository(session).vote(
        body.conversation_id, body.message_id, is_upvoted=body.type == "up"
    )
    return VoteResponse.model_validate(vote)
