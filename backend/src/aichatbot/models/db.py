"""
SQLAlchemy database models for AI Chatbot.

These models represent the database schema for conversations, their
messages and votes, generated documents with their version history, and
the stream records and delta log backing resumable streams.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Visibility(str, enum.Enum):
    """Who can read a conversation."""

    PUBLIC = "public"
    PRIVATE = "private"


class MessageRole(str, enum.Enum):
    """Role of the message author."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class DocumentKind(str, enum.Enum):
    """Kind of generated artifact."""

    TEXT = "text"
    CODE = "code"
    SHEET = "sheet"
    IMAGE = "image"


def _enum_column(enum_cls: type[enum.Enum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda x: [e.value for e in x],
    )


class Conversation(Base):
    """A chat between one owner and the assistant."""

    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    visibility: Mapped[Visibility] = mapped_column(
        _enum_column(Visibility), nullable=False, default=Visibility.PRIVATE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    messages: Mapped[list["Message"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
    votes: Mapped[list["Vote"]] = relationship(
        back_populates="conversation", cascade="all, delete-orphan"
    )
    streams: Mapped[list["StreamRecord"]] = relationship(
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="StreamRecord.created_at",
    )

    def __repr__(self) -> str:
        return f"<Conversation(id={self.id}, title={self.title!r})>"


class Message(Base):
    """A single message with its ordered, typed parts."""

    __tablename__ = "messages"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[MessageRole] = mapped_column(_enum_column(MessageRole), nullable=False)
    # Parts: [{"type": "text", "text": ...}, {"type": "tool-call", ...}, ...]
    parts: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    conversation: Mapped["Conversation"] = relationship(back_populates="messages")

    def __repr__(self) -> str:
        return f"<Message(id={self.id}, role={self.role})>"


class Vote(Base):
    """Up/down vote on an assistant message. One per (conversation, message)."""

    __tablename__ = "votes"

    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    message_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_upvoted: Mapped[bool] = mapped_column(Boolean, nullable=False)

    conversation: Mapped["Conversation"] = relationship(back_populates="votes")


class Document(Base):
    """
    One saved version of a generated document.

    Versions share ``id`` and are distinguished by ``created_at``; the row
    with the latest ``created_at`` is the current version. Rows are never
    updated in place.
    """

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), primary_key=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    kind: Mapped[DocumentKind] = mapped_column(
        _enum_column(DocumentKind), nullable=False, default=DocumentKind.TEXT
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return (
            f"<Document(id={self.id}, kind={self.kind}, created_at={self.created_at})>"
        )


class Suggestion(Base):
    """An edit suggestion generated against one document version."""

    __tablename__ = "suggestions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["document_id", "document_created_at"],
            ["documents.id", "documents.created_at"],
            ondelete="CASCADE",
        ),
        Index("ix_suggestions_document", "document_id", "document_created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    document_created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    original_text: Mapped[str] = mapped_column(Text, nullable=False)
    suggested_text: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class StreamRecord(Base):
    """One production run of deltas for a conversation. Never mutated."""

    __tablename__ = "streams"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    conversation_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    conversation: Mapped["Conversation"] = relationship(back_populates="streams")
    deltas: Mapped[list["StreamDelta"]] = relationship(
        back_populates="stream",
        cascade="all, delete-orphan",
        order_by="StreamDelta.sequence",
    )

    def __repr__(self) -> str:
        return f"<StreamRecord(id={self.id}, conversation_id={self.conversation_id})>"


class StreamDelta(Base):
    """Append-only delta log entry, unique on (stream_id, sequence)."""

    __tablename__ = "stream_deltas"

    stream_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("streams.id", ondelete="CASCADE"),
        primary_key=True,
    )
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    delta_type: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    stream: Mapped["StreamRecord"] = relationship(back_populates="deltas")
