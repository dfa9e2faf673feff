"""
Suggestion repository.
"""

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy.orm import Session

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.models.db import Suggestion


class SuggestionRepository(BaseRepository[Suggestion]):
    """Repository for Suggestion model."""

    def __init__(self, session: Session):
        super().__init__(Suggestion, session)

    def save_for_document(
        self,
        document_id: uuid.UUID,
        document_created_at: datetime,
        suggestions: list[dict[str, Any]],
        user_id: uuid.UUID,
    ) -> List[Suggestion]:
        """
        Save suggestions against one specific document version.

        Args:
            document_id: Document id
            document_created_at: Timestamp of the version the suggestions target
            suggestions: Dicts with original_text, suggested_text, description
                and optionally a pre-assigned id
            user_id: Owner UUID

        Returns:
            The saved suggestions
        """
        instances = [
            Suggestion(
                id=uuid.UUID(str(item["id"])) if item.get("id") else uuid.uuid4(),
                document_id=document_id,
                document_created_at=document_created_at,
                original_text=item["original_text"],
                suggested_text=item["suggested_text"],
                description=item.get("description"),
                is_resolved=False,
                user_id=user_id,
            )
            for item in suggestions
        ]
        self.session.add_all(instances)
        self.session.flush()
        return instances

    def get_by_document(self, document_id: uuid.UUID) -> List[Suggestion]:
        """Get suggestions for all versions of a document, oldest first."""
        return (
            self.session.query(Suggestion)
            .filter(Suggestion.document_id == document_id)
            .order_by(Suggestion.created_at.asc())
            .all()
        )

    def resolve(self, suggestion_id: uuid.UUID) -> Optional[Suggestion]:
        """
        Mark a suggestion resolved. Resolution is permanent.

        Returns:
            The suggestion, or None if not found
        """
        suggestion = self.get(suggestion_id)
        if suggestion is None:
            return None
        if not suggestion.is_resolved:
            suggestion.is_resolved = True
            self.session.flush()
        return suggestion
