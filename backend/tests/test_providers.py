"""Tests for streaming inference provider implementations."""

import asyncio
import logging
from types import SimpleNamespace as NS
from unittest.mock import AsyncMock, Mock, patch

import pytest

from aichatbot.ai.providers import (
    ChatMessage,
    ToolSpec,
    create_provider,
    get_available_providers,
)
from aichatbot.ai.providers.base import parse_tool_arguments
from aichatbot.ai.providers.anthropic_provider import AnthropicProvider
from aichatbot.ai.providers.openai_provider import OpenAIProvider
from aichatbot.exceptions import CapabilityUnsupported


class _AsyncEvents:
    """Async iterable (and async context manager) over canned events."""

    def __init__(self, events):
        self.events = list(events)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event


async def _collect(iterator):
    return [chunk async for chunk in iterator]


WEATHER_TOOL = ToolSpec(
    name="getWeather",
    description="Get the weather",
    parameters={"type": "object", "properties": {"city": {"type": "string"}}},
)


class TestProviderFactory:
    """Tests for provider factory function."""

    def test_get_available_providers(self):
        providers = get_available_providers()
        assert providers == ["openai", "anthropic"]

    @patch("aichatbot.ai.providers.openai_provider.AsyncOpenAI")
    def test_create_openai_provider(self, mock_openai_class: Mock):
        provider = create_provider(provider_type="openai", api_key="sk-test-key")

        assert isinstance(provider, OpenAIProvider)
        assert provider.provider_name == "openai"
        assert provider.supports_image_generation is True
        mock_openai_class.assert_called_once_with(api_key="sk-test-key")

    @patch("aichatbot.ai.providers.anthropic_provider.AsyncAnthropic")
    def test_create_anthropic_provider(self, mock_anthropic_class: Mock):
        provider = create_provider(provider_type="anthropic", api_key="sk-ant-test")

        assert isinstance(provider, AnthropicProvider)
        assert provider.provider_name == "anthropic"
        assert provider.supports_image_generation is False

    def test_create_provider_invalid_type(self):
        with pytest.raises(ValueError, match="Unknown provider type"):
            create_provider(provider_type="invalid", api_key="test-key")  # type: ignore

    def test_create_provider_missing_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            create_provider(provider_type="openai", api_key="")


class TestAnthropicProvider:
    """Tests for Anthropic provider implementation."""

    def test_initialization_no_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            AnthropicProvider(api_key="")

    @patch("aichatbot.ai.providers.anthropic_provider.AsyncAnthropic")
    def test_stream_text_and_reasoning(self, mock_anthropic_class: Mock):
        events = [
            NS(type="message_start"),
            NS(type="content_block_start", index=0, content_block=NS(type="text")),
            NS(
                type="content_block_delta",
                index=0,
                delta=NS(type="thinking_delta", thinking="Let me see."),
            ),
            NS(
                type="content_block_delta",
                index=0,
                delta=NS(type="text_delta", text="Hello"),
            ),
            NS(
                type="content_block_delta",
                index=0,
                delta=NS(type="text_delta", text=" there"),
            ),
            NS(type="content_block_stop", index=0),
            NS(
                type="message_delta",
                delta=NS(stop_reason="end_turn"),
                usage=NS(output_tokens=7),
            ),
        ]
        mock_client = Mock()
        mock_client.messages.stream.return_value = _AsyncEvents(events)
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="claude-3-haiku-20240307",
                    system="Be brief",
                    messages=[ChatMessage.user("Hi")],
                )
            )
        )

        assert [c.type for c in chunks] == ["reasoning", "text", "text", "finish"]
        assert chunks[0].text == "Let me see."
        assert "".join(c.text for c in chunks if c.type == "text") == "Hello there"
        assert chunks[-1].finish_reason == "end_turn"
        assert chunks[-1].usage == {"completion_tokens": 7}

        call_kwargs = mock_client.messages.stream.call_args[1]
        assert call_kwargs["system"] == "Be brief"
        assert call_kwargs["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "Hi"}]}
        ]
        assert "tools" not in call_kwargs

    @patch("aichatbot.ai.providers.anthropic_provider.AsyncAnthropic")
    def test_stream_assembles_tool_call(self, mock_anthropic_class: Mock):
        events = [
            NS(
                type="content_block_start",
                index=1,
                content_block=NS(type="tool_use", id="toolu_1", name="getWeather"),
            ),
            NS(
                type="content_block_delta",
                index=1,
                delta=NS(type="input_json_delta", partial_json='{"city": '),
            ),
            NS(
                type="content_block_delta",
                index=1,
                delta=NS(type="input_json_delta", partial_json='"Oslo"}'),
            ),
            NS(type="content_block_stop", index=1),
            NS(type="message_delta", delta=NS(stop_reason="tool_use"), usage=None),
        ]
        mock_client = Mock()
        mock_client.messages.stream.return_value = _AsyncEvents(events)
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="m",
                    system="s",
                    messages=[ChatMessage.user("Weather?")],
                    tools=[WEATHER_TOOL],
                )
            )
        )

        tool_call = chunks[0]
        assert tool_call.type == "tool-call"
        assert tool_call.tool_call_id == "toolu_1"
        assert tool_call.tool_name == "getWeather"
        assert tool_call.args == {"city": "Oslo"}
        assert chunks[-1].finish_reason == "tool_use"

        sent_tools = mock_client.messages.stream.call_args[1]["tools"]
        assert sent_tools[0]["name"] == "getWeather"
        assert sent_tools[0]["input_schema"] == WEATHER_TOOL.parameters

    @patch("aichatbot.ai.providers.anthropic_provider.AsyncAnthropic")
    def test_malformed_tool_arguments_become_empty(self, mock_anthropic_class: Mock):
        events = [
            NS(
                type="content_block_start",
                index=0,
                content_block=NS(type="tool_use", id="toolu_1", name="getWeather"),
            ),
            NS(
                type="content_block_delta",
                index=0,
                delta=NS(type="input_json_delta", partial_json='{"city": Oslo}'),
            ),
            NS(type="content_block_stop", index=0),
        ]
        mock_client = Mock()
        mock_client.messages.stream.return_value = _AsyncEvents(events)
        mock_anthropic_class.return_value = mock_client

        provider = AnthropicProvider(api_key="sk-ant-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="m",
                    system="s",
                    messages=[ChatMessage.user("Weather?")],
                    tools=[WEATHER_TOOL],
                )
            )
        )

        assert chunks[0].type == "tool-call"
        assert chunks[0].args == {}

    def test_convert_tool_messages(self):
        assistant = ChatMessage(
            role="assistant",
            parts=[
                {"type": "text", "text": "Checking"},
                {
                    "type": "tool-call",
                    "toolCallId": "c1",
                    "toolName": "getWeather",
                    "args": {"city": "Oslo"},
                },
            ],
        )
        tool = ChatMessage(
            role="tool",
            parts=[
                {
                    "type": "tool-result",
                    "toolCallId": "c1",
                    "toolName": "getWeather",
                    "result": {"temp": 3},
                }
            ],
        )

        converted_assistant = AnthropicProvider._convert_message(assistant)
        converted_tool = AnthropicProvider._convert_message(tool)

        assert converted_assistant["role"] == "assistant"
        assert converted_assistant["content"][1] == {
            "type": "tool_use",
            "id": "c1",
            "name": "getWeather",
            "input": {"city": "Oslo"},
        }
        assert converted_tool["role"] == "user"
        assert converted_tool["content"] == [
            {"type": "tool_result", "tool_use_id": "c1", "content": '{"temp": 3}'}
        ]

    @patch("aichatbot.ai.providers.anthropic_provider.AsyncAnthropic")
    def test_generate_image_unsupported(self, mock_anthropic_class: Mock):
        provider = AnthropicProvider(api_key="sk-ant-test")

        with pytest.raises(CapabilityUnsupported):
            asyncio.run(provider.generate_image("dall-e-3", "a cat"))


def _openai_chunk(content=None, tool_calls=None, finish_reason=None, usage=None):
    choices = []
    if content is not None or tool_calls is not None or finish_reason is not None:
        choices = [
            NS(
                delta=NS(content=content, tool_calls=tool_calls),
                finish_reason=finish_reason,
            )
        ]
    return NS(choices=choices, usage=usage)


class TestOpenAIProvider:
    """Tests for OpenAI provider implementation."""

    def test_initialization_no_api_key(self):
        with pytest.raises(ValueError, match="API key is required"):
            OpenAIProvider(api_key="")

    @patch("aichatbot.ai.providers.openai_provider.AsyncOpenAI")
    def test_stream_text(self, mock_openai_class: Mock):
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_AsyncEvents(
                [
                    _openai_chunk(content="Hel"),
                    _openai_chunk(content="lo"),
                    _openai_chunk(finish_reason="stop"),
                    _openai_chunk(
                        usage=NS(prompt_tokens=10, completion_tokens=2),
                    ),
                ]
            )
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="gpt-4o-mini",
                    system="Be brief",
                    messages=[ChatMessage.user("Hi")],
                )
            )
        )

        assert [c.type for c in chunks] == ["text", "text", "finish"]
        assert chunks[-1].finish_reason == "stop"
        assert chunks[-1].usage == {"prompt_tokens": 10, "completion_tokens": 2}

        call_kwargs = mock_client.chat.completions.create.call_args[1]
        assert call_kwargs["stream"] is True
        assert call_kwargs["messages"][0] == {"role": "system", "content": "Be brief"}
        assert call_kwargs["messages"][1] == {"role": "user", "content": "Hi"}

    @patch("aichatbot.ai.providers.openai_provider.AsyncOpenAI")
    def test_stream_assembles_tool_call_fragments(self, mock_openai_class: Mock):
        first = NS(
            index=0,
            id="call_1",
            function=NS(name="getWeather", arguments='{"ci'),
        )
        second = NS(index=0, id=None, function=NS(name=None, arguments='ty": "Oslo"}'))
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_AsyncEvents(
                [
                    _openai_chunk(tool_calls=[first]),
                    _openai_chunk(tool_calls=[second]),
                    _openai_chunk(finish_reason="tool_calls"),
                ]
            )
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="gpt-4o-mini",
                    system="s",
                    messages=[ChatMessage.user("Weather?")],
                    tools=[WEATHER_TOOL],
                )
            )
        )

        assert [c.type for c in chunks] == ["tool-call", "finish"]
        assert chunks[0].tool_call_id == "call_1"
        assert chunks[0].tool_name == "getWeather"
        assert chunks[0].args == {"city": "Oslo"}

        sent_tools = mock_client.chat.completions.create.call_args[1]["tools"]
        assert sent_tools[0]["function"]["name"] == "getWeather"

    @patch("aichatbot.ai.providers.openai_provider.AsyncOpenAI")
    def test_malformed_tool_arguments_become_empty(self, mock_openai_class: Mock):
        truncated = NS(
            index=0,
            id="call_1",
            function=NS(name="create_document", arguments='{"title": "Ess'),
        )
        mock_client = Mock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_AsyncEvents(
                [
                    _openai_chunk(tool_calls=[truncated]),
                    _openai_chunk(finish_reason="tool_calls"),
                ]
            )
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        chunks = asyncio.run(
            _collect(
                provider.stream(
                    model="gpt-4o-mini",
                    system="s",
                    messages=[ChatMessage.user("Write")],
                    tools=[WEATHER_TOOL],
                )
            )
        )

        assert [c.type for c in chunks] == ["tool-call", "finish"]
        assert chunks[0].tool_name == "create_document"
        assert chunks[0].args == {}

    def test_convert_tool_result_message(self):
        tool = ChatMessage(
            role="tool",
            parts=[
                {
                    "type": "tool-result",
                    "toolCallId": "c1",
                    "toolName": "getWeather",
                    "result": {"temp": 3},
                }
            ],
        )

        assert OpenAIProvider._convert_message(tool) == [
            {"role": "tool", "tool_call_id": "c1", "content": '{"temp": 3}'}
        ]

    def test_convert_assistant_tool_call(self):
        assistant = ChatMessage(
            role="assistant",
            parts=[
                {
                    "type": "tool-call",
                    "toolCallId": "c1",
                    "toolName": "getWeather",
                    "args": {"city": "Oslo"},
                }
            ],
        )

        [converted] = OpenAIProvider._convert_message(assistant)

        assert converted["content"] == ""
        assert converted["tool_calls"][0]["id"] == "c1"
        assert converted["tool_calls"][0]["function"]["arguments"] == (
            '{"city": "Oslo"}'
        )

    @patch("aichatbot.ai.providers.openai_provider.AsyncOpenAI")
    def test_generate_image(self, mock_openai_class: Mock):
        mock_client = Mock()
        mock_client.images.generate = AsyncMock(
            return_value=NS(data=[NS(b64_json="aW1hZ2U=")])
        )
        mock_openai_class.return_value = mock_client

        provider = OpenAIProvider(api_key="sk-test")
        result = asyncio.run(provider.generate_image("dall-e-3", "a cat"))

        assert result == "aW1hZ2U="
        call_kwargs = mock_client.images.generate.call_args[1]
        assert call_kwargs["prompt"] == "a cat"
        assert call_kwargs["response_format"] == "b64_json"


class TestParseToolArguments:
    def test_valid_object(self):
        assert parse_tool_arguments('{"city": "Oslo"}', "getWeather") == {"city": "Oslo"}

    def test_empty_arguments(self):
        assert parse_tool_arguments("", "getWeather") == {}

    def test_invalid_json(self, caplog):
        with caplog.at_level(logging.WARNING, logger="aichatbot.ai.providers.base"):
            assert parse_tool_arguments('{"city":', "getWeather") == {}

        assert "Malformed arguments for tool getWeather" in caplog.text

    def test_non_object_json(self):
        assert parse_tool_arguments('["Oslo"]', "getWeather") == {}
