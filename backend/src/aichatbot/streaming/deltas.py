"""
Delta vocabulary and encoder.

A delta is one typed increment of a production run's output. The encoder
turns raw inference chunks into deltas so that the persistence path and the
live transport only ever see this fixed vocabulary.
"""

import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from aichatbot.ai.providers.base import InferenceChunk


class DeltaType(str, enum.Enum):
    """Discriminator for delta payloads."""

    TEXT = "text-delta"
    REASONING = "reasoning-delta"
    ID = "id"
    TITLE = "title"
    KIND = "kind"
    CLEAR = "clear"
    CODE = "code-delta"
    SHEET = "sheet-delta"
    IMAGE = "image-delta"
    SUGGESTION = "suggestion"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    STEP_FINISH = "finish-step"
    ERROR = "error"
    FINISH = "finish"  # Terminal; nothing follows it in a stream


@dataclass(frozen=True)
class Delta:
    """One typed increment. ``content`` must be JSON-serializable."""

    type: DeltaType
    content: Any = None

    @property
    def is_terminal(self) -> bool:
        return self.type == DeltaType.FINISH

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Delta":
        return cls(type=DeltaType(data["type"]), content=data.get("content"))


@dataclass(frozen=True)
class SequencedDelta:
    """A delta with its 1-based position in the stream's log."""

    sequence: int
    delta: Delta

    def to_dict(self) -> dict[str, Any]:
        return {"sequence": self.sequence, **self.delta.to_dict()}


class DeltaSink(Protocol):
    """Anything deltas can be pushed into (a stream context, a test buffer)."""

    def write(self, delta: Delta) -> Any: ...


class DeltaEncoder:
    """
    Normalize raw inference chunks into deltas.

    Text chunks map to ``content_type``. Document kinds that are re-rendered
    as a whole (code, sheet) use ``cumulative=True``: each delta carries the
    full content so far, passed through ``transform`` (e.g. fence stripping).
    Unchanged cumulative content produces no delta.

    Example:
        >>> encoder = DeltaEncoder()
        >>> encoder.encode(InferenceChunk.text_chunk("Hello"))
        [Delta(type=<DeltaType.TEXT: 'text-delta'>, content='Hello')]
    """

    def __init__(
        self,
        content_type: DeltaType = DeltaType.TEXT,
        cumulative: bool = False,
        transform: Optional[Callable[[str], str]] = None,
        emit_step_finish: bool = True,
    ):
        self.content_type = content_type
        self.cumulative = cumulative
        self.transform = transform
        self.emit_step_finish = emit_step_finish
        self._buffer: list[str] = []
        self._last_emitted: Optional[str] = None

    @property
    def content(self) -> str:
        """Full text content seen so far (transformed if configured)."""
        raw = "".join(self._buffer)
        return self.transform(raw) if self.transform else raw

    @staticmethod
    def header(document_id: Any, title: str, kind: str) -> list[Delta]:
        """Deltas that let a subscriber initialize its view before content."""
        return [
            Delta(DeltaType.ID, str(document_id)),
            Delta(DeltaType.TITLE, title),
            Delta(DeltaType.KIND, str(kind)),
        ]

    @staticmethod
    def finish(reason: str = "stop") -> Delta:
        return Delta(DeltaType.FINISH, {"finishReason": reason})

    @staticmethod
    def error_sequence(message: str, reason: str = "error") -> list[Delta]:
        """A complete, well-formed ending: one error delta then the terminal delta."""
        return [Delta(DeltaType.ERROR, message), DeltaEncoder.finish(reason)]

    def encode(self, chunk: InferenceChunk) -> list[Delta]:
        """Turn one raw chunk into zero or more deltas, in order."""
        if chunk.type == "text":
            return self._encode_text(chunk.text)

        if chunk.type == "reasoning":
            if not chunk.text:
                return []
            return [Delta(DeltaType.REASONING, chunk.text)]

        if chunk.type == "tool-call":
            return [
                Delta(
                    DeltaType.TOOL_CALL,
                    {
                        "toolCallId": chunk.tool_call_id,
                        "toolName": chunk.tool_name,
                        "args": chunk.args,
                    },
                )
            ]

        if chunk.type == "finish":
            if not self.emit_step_finish:
                return []
            return [
                Delta(
                    DeltaType.STEP_FINISH,
                    {"finishReason": chunk.finish_reason, "usage": chunk.usage},
                )
            ]

        if chunk.type == "error":
            return [Delta(DeltaType.ERROR, chunk.text)]

        return []

    def _encode_text(self, text: str) -> list[Delta]:
        if not text:
            return []
        self._buffer.append(text)

        if not self.cumulative:
            return [Delta(self.content_type, text)]

        content = self.content
        if content == self._last_emitted:
            return []
        self._last_emitted = content
        return [Delta(self.content_type, content)]
