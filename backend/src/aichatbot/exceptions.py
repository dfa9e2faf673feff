"""Custom exceptions for the AI Chatbot streaming pipeline."""

from typing import Optional
from uuid import UUID


class RegistrationFailure(Exception):
    """Raised when a stream id could not be durably recorded.

    Fatal for the current turn: no inference call is made.
    """

    def __init__(self, conversation_id: UUID, reason: str):
        self.conversation_id = conversation_id
        self.reason = reason
        super().__init__(
            f"Could not register stream for conversation {conversation_id}: {reason}"
        )


class StreamConflict(Exception):
    """Raised when a conversation already has a stream running.

    A conversation has at most one active stream; the running one must
    finish or be stopped before another turn starts.
    """

    def __init__(self, conversation_id: UUID, stream_id: UUID):
        self.conversation_id = conversation_id
        self.stream_id = stream_id
        super().__init__(
            f"Conversation {conversation_id} already has running stream {stream_id}"
        )


class ProducerFailure(Exception):
    """Raised when the inference producer fails mid-stream."""

    def __init__(self, message: str, stream_id: Optional[UUID] = None):
        self.stream_id = stream_id
        super().__init__(message)


class CapabilityUnsupported(Exception):
    """Raised when a provider cannot produce the requested kind of content."""

    def __init__(self, capability: str, provider: str):
        self.capability = capability
        self.provider = provider
        super().__init__(f"{capability} is not supported with {provider} models.")


class SubscriberDisconnect(Exception):
    """Raised inside a subscription that was closed by its reader."""


class ResumeNotFound(Exception):
    """Raised when there is nothing to resume for a conversation or stream."""

    def __init__(self, conversation_id: UUID, stream_id: Optional[UUID] = None):
        self.conversation_id = conversation_id
        self.stream_id = stream_id
        super().__init__(f"No resumable stream for conversation {conversation_id}")


class StreamClosedError(Exception):
    """Raised when writing to a stream that already reached a terminal state."""

    def __init__(self, stream_id: UUID):
        self.stream_id = stream_id
        super().__init__(f"Stream {stream_id} is already finished")


class UnknownDocumentKind(Exception):
    """Raised when no artifact handler is registered for a document kind."""

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"No document handler registered for kind: {kind}")
