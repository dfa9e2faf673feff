"""
Chat API routes.

Turns are served as Server-Sent Events. Every event carries ``id:
<sequence>``, so a reconnecting client's ``Last-Event-ID`` header is its
resume cursor.
"""

import json
import logging
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from aichatbot.api.auth import AuthContext, get_auth_context
from aichatbot.api.deps import get_orchestrator, get_stream_manager
from aichatbot.api.schemas import (
    ChatRequest,
    ConversationResponse,
    DeleteResponse,
    MessageResponse,
    VisibilityUpdate,
)
from aichatbot.chat import ChatOrchestrator, has_remaining_messages, to_chat_messages
from aichatbot.config import settings
from aichatbot.db.connection import get_db
from aichatbot.db.repositories import ConversationRepository, MessageRepository
from aichatbot.exceptions import RegistrationFailure, ResumeNotFound, StreamConflict
from aichatbot.models.db import Conversation, MessageRole, Visibility
from aichatbot.streaming import SequencedDelta, StreamManager
from aichatbot.utils.timeutils import as_utc

router = APIRouter()
logger = logging.getLogger(__name__)


def format_sse(item: SequencedDelta) -> str:
    return f"id: {item.sequence}\ndata: {json.dumps(item.to_dict())}\n\n"


async def _event_stream(iterator: AsyncIterator[SequencedDelta]) -> AsyncIterator[str]:
    try:
        async for item in iterator:
            yield format_sse(item)
    finally:
        # Client went away or the stream ended; production is unaffected
        await iterator.aclose()  # type: ignore[attr-defined]
        logger.debug("SSE subscriber detached")


def sse_response(iterator: AsyncIterator[SequencedDelta]) -> StreamingResponse:
    return StreamingResponse(
        _event_stream(iterator),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def _get_owned_conversation(
    session: Session, conversation_id: UUID, auth: AuthContext
) -> Conversation:
    conversation = ConversationRepository(session).get(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if conversation.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return conversation


def _get_readable_conversation(
    session: Session, conversation_id: UUID, auth: AuthContext
) -> Conversation:
    conversation = ConversationRepository(session).get(conversation_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if (
        conversation.visibility == Visibility.PRIVATE
        and conversation.user_id != auth.user_id
    ):
        raise HTTPException(status_code=403, detail="Forbidden")
    return conversation


@router.post("/chat")
async def start_chat(
    body: ChatRequest,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
    manager: StreamManager = Depends(get_stream_manager),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """
    Save the user message and start a new assistant turn.

    The turn runs detached from this request: disconnecting does not stop
    it, and GET /chat/{id}/stream reattaches. While a turn is running the
    conversation rejects new messages with 409.
    """
    if body.selected_chat_model not in orchestrator.models.names():
        raise HTTPException(status_code=400, detail="Unknown chat model")

    if not has_remaining_messages(session, auth.user_id, auth.user_type, settings):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="You have exceeded your maximum number of messages for the day",
        )

    conversation_repo = ConversationRepository(session)
    message_repo = MessageRepository(session)

    conversation = conversation_repo.get(body.id)
    if conversation is None:
        title = await orchestrator.generate_title(body.message.text())
        conversation = conversation_repo.create(
            id=body.id,
            user_id=auth.user_id,
            title=title,
            visibility=body.selected_visibility,
        )
        logger.info(f"Created conversation {conversation.id}")
    elif conversation.user_id != auth.user_id:
        raise HTTPException(status_code=403, detail="Forbidden")
    elif manager.active_context(conversation.id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A response is already being generated for this conversation",
        )

    message_repo.save_message(
        conversation_id=conversation.id,
        role=MessageRole.USER,
        parts=[part.model_dump(exclude_none=True) for part in body.message.parts],
        attachments=body.message.attachments,
        id=body.message.id,
    )
    history = to_chat_messages(message_repo.get_by_conversation(conversation.id))
    # Producers use their own sessions; they must see this turn's message
    session.commit()

    produce = orchestrator.build_producer(
        conversation_id=body.id,
        user_id=auth.user_id,
        history=history,
        selected_model=body.selected_chat_model,
    )
    try:
        iterator = manager.start_or_resume(body.id, produce=produce)
    except RegistrationFailure as e:
        logger.error(str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not start the response stream",
        ) from e
    except StreamConflict as e:
        logger.warning(str(e))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A response is already being generated for this conversation",
        ) from e

    return sse_response(iterator)


@router.get("/chat/{conversation_id}/stream", response_model=None)
async def resume_chat(
    conversation_id: UUID,
    cursor: Optional[int] = Query(
        default=None, ge=0, description="Last sequence number already received"
    ),
    last_event_id: Optional[str] = Header(default=None, alias="Last-Event-ID"),
    stream_id: Optional[UUID] = Query(default=None),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
    manager: StreamManager = Depends(get_stream_manager),
) -> StreamingResponse | Response:
    """
    Resume the conversation's latest stream after a cursor.

    Returns 204 when there is nothing to resume.
    """
    _get_readable_conversation(session, conversation_id, auth)

    if cursor is None and last_event_id:
        try:
            cursor = int(last_event_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid Last-Event-ID")

    try:
        iterator = manager.resume(conversation_id, cursor or 0, stream_id=stream_id)
    except ResumeNotFound:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return sse_response(iterator)


@router.post("/chat/{conversation_id}/stop")
async def stop_chat(
    conversation_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
    manager: StreamManager = Depends(get_stream_manager),
) -> dict[str, bool]:
    """Stop the running turn of a conversation."""
    _get_owned_conversation(session, conversation_id, auth)
    return {"stopped": manager.stop(conversation_id)}


@router.delete("/chat/{conversation_id}", response_model=ConversationResponse)
def delete_chat(
    conversation_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    """Delete a conversation with its messages, votes and streams."""
    conversation = _get_owned_conversation(session, conversation_id, auth)
    response = ConversationResponse.model_validate(conversation)
    session.delete(conversation)
    session.flush()
    logger.info(f"Deleted conversation {conversation_id}")
    return response


@router.patch("/chat/{conversation_id}/visibility", response_model=ConversationResponse)
def update_visibility(
    conversation_id: UUID,
    body: VisibilityUpdate,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> ConversationResponse:
    _get_owned_conversation(session, conversation_id, auth)
    conversation = ConversationRepository(session).update_visibility(
        conversation_id, body.visibility
    )
    return ConversationResponse.model_validate(conversation)


@router.get("/chat/{conversation_id}/messages", response_model=list[MessageResponse])
def list_messages(
    conversation_id: UUID,
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[MessageResponse]:
    _get_readable_conversation(session, conversation_id, auth)
    messages = MessageRepository(session).get_by_conversation(conversation_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.delete("/chat/{conversation_id}/messages", response_model=DeleteResponse)
def delete_trailing_messages(
    conversation_id: UUID,
    after: datetime = Query(..., description="Delete messages created at or after"),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> DeleteResponse:
    """Delete messages from a point on, e.g. before regenerating an edited turn."""
    _get_owned_conversation(session, conversation_id, auth)
    deleted = MessageRepository(session).delete_after(conversation_id, as_utc(after))
    return DeleteResponse(deleted=deleted)


@router.get("/history", response_model=list[ConversationResponse])
def history(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    auth: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> list[ConversationResponse]:
    """The user's conversations, newest first."""
    conversations = ConversationRepository(session).get_by_user(
        auth.user_id, limit=limit, offset=offset
    )
    return [ConversationResponse.model_validate(c) for c in conversations]
