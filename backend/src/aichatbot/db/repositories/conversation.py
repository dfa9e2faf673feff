"""
Conversation repository.
"""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import Conversation, Visibility


class ConversationRepository(BaseRepository[Conversation]):
    """Repository for Conversation model."""

    def __init__(self, session: Session):
        super().__init__(Conversation, session)

    def get_by_user(
        self, user_id: uuid.UUID, limit: Optional[int] = None, offset: int = 0
    ) -> List[Conversation]:
        """
        Get a user's conversations, newest first.

        Args:
            user_id: Owner UUID
            limit: Maximum number of records to return
            offset: Number of records to skip

        Returns:
            List of conversations
        """
        query = (
            self.session.query(Conversation)
            .filter(Conversation.user_id == user_id)
            .order_by(Conversation.created_at.desc())
            .offset(offset)
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    def update_visibility(
        self, conversation_id: uuid.UUID, visibility: Visibility
    ) -> Optional[Conversation]:
        """Change who can read a conversation."""
        return self.update(conversation_id, visibility=visibility)
