"""
API schemas for the AI Chatbot.

Pydantic models for request/response validation.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from aichatbot.ai.models import CHAT_MODEL
from aichatbot.models.db import DocumentKind, MessageRole, Visibility

# ===== Chat =====


class MessagePart(BaseModel):
    """One typed part of a message; extra keys depend on the part type."""

    type: str
    text: Optional[str] = None

    model_config = {"extra": "allow"}


class ChatMessageIn(BaseModel):
    """The user message that starts a turn."""

    id: UUID
    role: MessageRole = MessageRole.USER
    parts: list[MessagePart]
    attachments: list[dict[str, Any]] = Field(default_factory=list)

    def text(self) -> str:
        return "".join(p.text or "" for p in self.parts if p.type == "text")


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    id: UUID = Field(..., description="Conversation id (created on first message)")
    message: ChatMessageIn
    selected_chat_model: str = CHAT_MODEL
    selected_visibility: Visibility = Visibility.PRIVATE


class ConversationResponse(BaseModel):
    """Response schema for Conversation."""

    id: UUID
    user_id: UUID
    title: str
    visibility: Visibility
    created_at: datetime

    class Config:
        from_attributes = True


class VisibilityUpdate(BaseModel):
    visibility: Visibility


class MessageResponse(BaseModel):
    """Response schema for Message."""

    id: UUID
    conversation_id: UUID
    role: MessageRole
    parts: list[dict[str, Any]]
    attachments: list[dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True


class DeleteResponse(BaseModel):
    deleted: int


# ===== Votes =====


class VoteRequest(BaseModel):
    conversation_id: UUID
    message_id: UUID
    type: str = Field(..., pattern="^(up|down)$")


class VoteResponse(BaseModel):
    conversation_id: UUID
    message_id: UUID
    is_upvoted: bool

    class Config:
        from_attributes = True


# ===== Documents =====


class DocumentSave(BaseModel):
    """Request body for saving a new document version."""

    title: str
    kind: DocumentKind
    content: Optional[str] = None


class DocumentResponse(BaseModel):
    """Response schema for one document version."""

    id: UUID
    created_at: datetime
    title: str
    kind: DocumentKind
    content: Optional[str] = None
    user_id: UUID

    class Config:
        from_attributes = True


class SuggestionResponse(BaseModel):
    """Response schema for Suggestion."""

    id: UUID
    document_id: UUID
    document_created_at: datetime
    original_text: str
    suggested_text: str
    description: Optional[str] = None
    is_resolved: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ArtifactKindsResponse(BaseModel):
    """Document kinds and the content delta types each one emits."""

    kinds: dict[str, list[str]]
