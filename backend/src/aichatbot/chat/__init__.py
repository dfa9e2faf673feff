"""Chat turns: the tool loop, chat tools, and message quotas."""

from aichatbot.chat.entitlements import UserType, has_remaining_messages
from aichatbot.chat.orchestrator import ChatOrchestrator, to_chat_messages

__all__ = [
    "ChatOrchestrator",
    "UserType",
    "has_remaining_messages",
    "to_chat_messages",
]
