"""
Repository layer for database operations.

Provides a clean API for CRUD operations on database models.
"""

from aichatbot.db.repositories.base import BaseRepository
from aichatbot.db.repositories.conversation import ConversationRepository
from aichatbot.db.repositories.delta_log import StreamDeltaRepository
from aichatbot.db.repositories.document import DocumentRepository
from aichatbot.db.repositories.message import MessageRepository
from aichatbot.db.repositories.stream import StreamRecordRepository
from aichatbot.db.repositories.suggestion import SuggestionRepository
from aichatbot.db.repositories.vote import VoteRepository

__all__ = [
    "BaseRepository",
    "ConversationRepository",
    "DocumentRepository",
    "MessageRepository",
    "StreamDeltaRepository",
    "StreamRecordRepository",
    "SuggestionRepository",
    "VoteRepository",
]
