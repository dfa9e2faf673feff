"""
Per-user-type message quotas.

Guests and regular users may send a limited number of messages in any
rolling 24 hour window.
"""

import enum
import uuid
from datetime import timedelta

from sqlalchemy.orm import Session

from aichatbot.config import Settings
from aichatbot.db.repositories import MessageRepository
from aichatbot.utils.timeutils import utcnow


class UserType(str, enum.Enum):
    GUEST = "guest"
    REGULAR = "regular"


def max_messages_per_day(user_type: UserType, settings: Settings) -> int:
    if user_type == UserType.GUEST:
        return settings.guest_max_messages_per_day
    return settings.regular_max_messages_per_day


def has_remaining_messages(
    session: Session, user_id: uuid.UUID, user_type: UserType, settings: Settings
) -> bool:
    """True if the user may send another message now."""
    since = utcnow() - timedelta(hours=24)
    sent = MessageRepository(session).count_user_messages_since(user_id, since)
    return sent < max_messages_per_day(user_type, settings)
