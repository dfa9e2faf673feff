"""
Vote repository.
"""

import uuid
from typing import List

from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import Vote


class VoteRepository(BaseRepository[Vote]):
    """Repository for Vote model."""

    def __init__(self, session: Session):
        super().__init__(Vote, session)

    def get_by_conversation(self, conversation_id: uuid.UUID) -> List[Vote]:
        """Get all votes cast in a conversation."""
        return (
            self.session.query(Vote)
            .filter(Vote.conversation_id == conversation_id)
            .all()
        )

    def vote(
        self, conversation_id: uuid.UUID, message_id: uuid.UUID, is_upvoted: bool
    ) -> Vote:
        """
        Record a vote; a second vote on the same message overwrites the first.

        Args:
            conversation_id: Conversation UUID
            message_id: Message UUID
            is_upvoted: True for up, False for down

        Returns:
            The stored vote
        """
        existing = self.get((conversation_id, message_id))
        if existing is not None:
            existing.is_upvoted = is_upvoted
            self.session.flush()
            return existing
        return self.create(
            conversation_id=conversation_id,
            message_id=message_id,
            is_upvoted=is_upvoted,
        )
