"""Anthropic inference provider implementation."""

import json
import logging
from typing import Any, AsyncIterator, Optional

from anthropic import AsyncAnthropic

from aichatbot.ai.providers.base import (
    ChatMessage,
    InferenceChunk,
    InferenceProvider,
    ToolSpec,
    parse_tool_arguments,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(InferenceProvider):
    """Anthropic provider using the async Messages streaming API.

    Anthropic models cannot generate images; generate_image() raises
    CapabilityUnsupported via the base class.
    """

    def __init__(self, api_key: str):
        """Initialize the Anthropic provider.

        Args:
            api_key: Anthropic API key
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self.client = AsyncAnthropic(api_key=api_key)
        logger.info("Initialized Anthropic provider")

    @property
    def provider_name(self) -> str:
        """Return 'anthropic' as the provider identifier."""
        return "anthropic"

    async def stream(
        self,
        model: str,
        system: str,
        messages: list[ChatMessage],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[InferenceChunk]:
        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": [self._convert_message(m) for m in messages],
        }
        if tools:
            request_params["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.parameters,
                }
                for tool in tools
            ]

        # Tool input arrives as partial JSON per content block index
        tool_blocks: dict[int, dict[str, Any]] = {}
        stop_reason = "stop"
        usage: dict[str, int] = {}

        async with self.client.messages.stream(**request_params) as stream:
            async for event in stream:
                if event.type == "content_block_start":
                    block = event.content_block
                    if block.type == "tool_use":
                        tool_blocks[event.index] = {
                            "id": block.id,
                            "name": block.name,
                            "json": "",
                        }
                elif event.type == "content_block_delta":
                    delta = event.delta
                    if delta.type == "text_delta":
                        yield InferenceChunk.text_chunk(delta.text)
                    elif delta.type == "thinking_delta":
                        yield InferenceChunk(type="reasoning", text=delta.thinking)
                    elif delta.type == "input_json_delta":
                        tool_blocks[event.index]["json"] += delta.partial_json
                elif event.type == "content_block_stop":
                    pending = tool_blocks.pop(event.index, None)
                    if pending is not None:
                        yield InferenceChunk(
                            type="tool-call",
                            tool_call_id=pending["id"],
                            tool_name=pending["name"],
                            args=parse_tool_arguments(pending["json"], pending["name"]),
                        )
                elif event.type == "message_delta":
                    if event.delta.stop_reason:
                        stop_reason = event.delta.stop_reason
                    if event.usage:
                        usage["completion_tokens"] = event.usage.output_tokens

        yield InferenceChunk.finish_chunk(stop_reason, usage)

    @staticmethod
    def _convert_message(message: ChatMessage) -> dict[str, Any]:
        """Translate a neutral message into Anthropic content blocks."""
        content: list[dict[str, Any]] = []
        for part in message.parts:
            part_type = part.get("type")
            if part_type == "text" and part.get("text"):
                content.append({"type": "text", "text": part["text"]})
            elif part_type == "tool-call":
                content.append(
                    {
                        "type": "tool_use",
                        "id": part["toolCallId"],
                        "name": part["toolName"],
                        "input": part.get("args", {}),
                    }
                )
            elif part_type == "tool-result":
                content.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": part["toolCallId"],
                        "content": json.dumps(part.get("result")),
                    }
                )

        # Tool results are sent back in a user turn
        role = "user" if message.role == "tool" else message.role
        return {"role": role, "content": content}
