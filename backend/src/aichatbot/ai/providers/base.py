"""Base protocol and types for streaming inference providers."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from aichatbot.exceptions import CapabilityUnsupported

logger = logging.getLogger(__name__)


@dataclass
class InferenceChunk:
    """One raw increment of model output, provider-neutral.

    Attributes:
        type: "text", "reasoning", "tool-call", "finish" or "error"
        text: Text payload for text/reasoning/error chunks
        tool_call_id: Provider id of a completed tool call
        tool_name: Name of the called tool
        args: Parsed tool arguments
        finish_reason: Why generation stopped (finish chunks only)
        usage: Token usage reported with the finish chunk
    """

    type: str
    text: str = ""
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None
    args: dict[str, Any] = field(default_factory=dict)
    finish_reason: Optional[str] = None
    usage: dict[str, int] = field(default_factory=dict)

    @classmethod
    def text_chunk(cls, text: str) -> "InferenceChunk":
        return cls(type="text", text=text)

    @classmethod
    def finish_chunk(
        cls, reason: str = "stop", usage: Optional[dict[str, int]] = None
    ) -> "InferenceChunk":
        return cls(type="finish", finish_reason=reason, usage=usage or {})


def parse_tool_arguments(raw: str, tool_name: Optional[str]) -> dict[str, Any]:
    """Decode streamed tool-call arguments.

    Models occasionally emit truncated or invalid JSON. That yields empty
    arguments, so the tool reports the problem back to the model instead of
    the whole turn failing.
    """
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Malformed arguments for tool {tool_name}: {e}")
        return {}
    if not isinstance(args, dict):
        logger.warning(f"Arguments for tool {tool_name} are not an object: {raw!r}")
        return {}
    return args


@dataclass
class ToolSpec:
    """A tool the model may call, described by a JSON schema."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ChatMessage:
    """Provider-neutral chat message.

    ``parts`` uses the same shapes as persisted message parts:
    ``{"type": "text", "text": ...}``,
    ``{"type": "tool-call", "toolCallId": ..., "toolName": ..., "args": {...}}``,
    ``{"type": "tool-result", "toolCallId": ..., "toolName": ..., "result": ...}``.
    Reasoning and file parts are not sent back to the model.
    """

    role: str
    parts: list[dict[str, Any]]

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(role="user", parts=[{"type": "text", "text": text}])

    def text(self) -> str:
        return "".join(
            part.get("text", "") for part in self.parts if part.get("type") == "text"
        )


class InferenceProvider(ABC):
    """Abstract base class for streaming inference providers.

    Implementations must handle:
    - API client initialization
    - Translating neutral messages and tools into the provider's format
    - Yielding InferenceChunk objects in arrival order, ending with a finish chunk
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier (e.g., 'openai', 'anthropic')."""
        ...

    @property
    def supports_image_generation(self) -> bool:
        """Whether generate_image() produces real images."""
        return False

    @abstractmethod
    def stream(
        self,
        model: str,
        system: str,
        messages: list[ChatMessage],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[InferenceChunk]:
        """Stream a completion as raw chunks.

        Args:
            model: Provider model identifier
            system: System prompt
            messages: Conversation so far
            tools: Tools the model may call
            max_tokens: Maximum tokens in the response
            temperature: Sampling temperature

        Returns:
            Async iterator of InferenceChunk

        Raises:
            Exception: Provider API errors propagate to the caller
        """
        ...

    async def generate_image(self, model: str, prompt: str) -> str:
        """Generate an image and return it base64 encoded.

        Raises:
            CapabilityUnsupported: If the provider cannot generate images
        """
        raise CapabilityUnsupported("Image generation", self.provider_name)
