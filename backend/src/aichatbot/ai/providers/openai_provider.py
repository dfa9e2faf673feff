"""OpenAI inference provider implementation."""

import json
import logging
from typing import Any, AsyncIterator, Optional

from openai import AsyncOpenAI

from aichatbot.ai.providers.base import (
    ChatMessage,
    InferenceChunk,
    InferenceProvider,
    ToolSpec,
    parse_tool_arguments,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(InferenceProvider):
    """OpenAI provider using streaming chat completions.

    Supports image generation through the Images API.
    """

    def __init__(self, api_key: str):
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key
        """
        if not api_key:
            raise ValueError("OpenAI API key is required")

        self.client = AsyncOpenAI(api_key=api_key)
        logger.info("Initialized OpenAI provider")

    @property
    def provider_name(self) -> str:
        """Return 'openai' as the provider identifier."""
        return "openai"

    @property
    def supports_image_generation(self) -> bool:
        return True

    async def stream(
        self,
        model: str,
        system: str,
        messages: list[ChatMessage],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[InferenceChunk]:
        converted: list[dict[str, Any]] = [{"role": "system", "content": system}]
        for message in messages:
            converted.extend(self._convert_message(message))

        request_params: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": converted,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if tools:
            request_params["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in tools
            ]

        # Tool call arguments arrive in pieces keyed by index
        tool_calls: dict[int, dict[str, Any]] = {}
        finish_reason = "stop"
        usage: dict[str, int] = {}

        response = await self.client.chat.completions.create(**request_params)
        async for chunk in response:
            if chunk.usage:
                usage = {
                    "prompt_tokens": chunk.usage.prompt_tokens,
                    "completion_tokens": chunk.usage.completion_tokens,
                }
            if not chunk.choices:
                continue

            choice = chunk.choices[0]
            delta = choice.delta
            if delta.content:
                yield InferenceChunk.text_chunk(delta.content)
            for call in delta.tool_calls or []:
                pending = tool_calls.setdefault(
                    call.index, {"id": None, "name": None, "arguments": ""}
                )
                if call.id:
                    pending["id"] = call.id
                if call.function and call.function.name:
                    pending["name"] = call.function.name
                if call.function and call.function.arguments:
                    pending["arguments"] += call.function.arguments
            if choice.finish_reason:
                finish_reason = choice.finish_reason

        for index in sorted(tool_calls):
            pending = tool_calls[index]
            yield InferenceChunk(
                type="tool-call",
                tool_call_id=pending["id"],
                tool_name=pending["name"],
                args=parse_tool_arguments(pending["arguments"], pending["name"]),
            )

        yield InferenceChunk.finish_chunk(finish_reason, usage)

    async def generate_image(self, model: str, prompt: str) -> str:
        """Generate one image and return it base64 encoded."""
        response = await self.client.images.generate(
            model=model,
            prompt=prompt,
            n=1,
            response_format="b64_json",
        )
        return response.data[0].b64_json

    @staticmethod
    def _convert_message(message: ChatMessage) -> list[dict[str, Any]]:
        """Translate a neutral message into one or more OpenAI messages."""
        if message.role == "tool":
            return [
                {
                    "role": "tool",
                    "tool_call_id": part["toolCallId"],
                    "content": json.dumps(part.get("result")),
                }
                for part in message.parts
                if part.get("type") == "tool-result"
            ]

        converted: dict[str, Any] = {"role": message.role, "content": message.text()}
        calls = [p for p in message.parts if p.get("type") == "tool-call"]
        if calls:
            converted["tool_calls"] = [
                {
                    "id": call["toolCallId"],
                    "type": "function",
                    "function": {
                        "name": call["toolName"],
                        "arguments": json.dumps(call.get("args", {})),
                    },
                }
                for call in calls
            ]
        return [converted]
