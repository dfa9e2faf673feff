"""
Message repository.
"""

import uuid
from datetime import UTC, datetime
from typing import Any, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import Conversation, Message, MessageRole, Vote


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    def __init__(self, session: Session):
        super().__init__(Message, session)

    def save_message(
        self,
        conversation_id: uuid.UUID,
        role: MessageRole,
        parts: list[dict[str, Any]],
        attachments: Optional[list[dict[str, Any]]] = None,
        id: Optional[uuid.UUID] = None,
        created_at: Optional[datetime] = None,
    ) -> Message:
        """
        Persist a message. Messages are immutable once saved.

        Args:
            conversation_id: Owning conversation
            role: Author role
            parts: Ordered typed parts
            attachments: Optional attachment descriptors
            id: Client-supplied message id (generated if omitted)
            created_at: Creation time (now if omitted)

        Returns:
            The saved message
        """
        return self.create(
            id=id or uuid.uuid4(),
            conversation_id=conversation_id,
            role=role,
            parts=parts,
            attachments=attachments or [],
            created_at=created_at or datetime.now(UTC),
        )

    def get_by_conversation(self, conversation_id: uuid.UUID) -> List[Message]:
        """Get all messages of a conversation in creation order."""
        return (
            self.session.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc())
            .all()
        )

    def delete_after(self, conversation_id: uuid.UUID, timestamp: datetime) -> int:
        """
        Delete messages (and their votes) created at or after a timestamp.

        Used when a user edits a message and regenerates from that point.

        Returns:
            Number of messages deleted
        """
        message_ids = [
            row.id
            for row in self.session.query(Message.id).filter(
                Message.conversation_id == conversation_id,
                Message.created_at >= timestamp,
            )
        ]
        if not message_ids:
            return 0

        self.session.execute(
            delete(Vote).where(
                Vote.conversation_id == conversation_id,
                Vote.message_id.in_(message_ids),
            )
        )
        result = self.session.execute(
            delete(Message).where(Message.id.in_(message_ids))
        )
        self.session.expire_all()
        return result.rowcount or 0

    def count_user_messages_since(self, user_id: uuid.UUID, since: datetime) -> int:
        """Count messages a user sent across all conversations since a time."""
        return (
            self.session.query(func.count(Message.id))
            .join(Conversation, Conversation.id == Message.conversation_id)
            .filter(
                Conversation.user_id == user_id,
                Message.role == MessageRole.USER,
                Message.created_at >= since,
            )
            .scalar()
            or 0
        )
