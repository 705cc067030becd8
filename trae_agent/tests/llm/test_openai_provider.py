# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the OpenAI-compatible provider."""
import json
import pytest

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

from src.config import ModelParameters
from src.llm.providers.openai_provider import OpenAIProvider, parse_tool_arguments
from src.tools import BashTool
from src.types.llm_types import (
    Message,
    StopReason,
    TextContent,
    ToolCallContent,
    ToolResultContent,
)


def make_response(content=None, tool_calls=None, finish_reason="stop", usage=True):
    message = SimpleNamespace(content=content, tool_calls=tool_calls, reasoning_content=None)
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-test",
        created=0,
        system_fingerprint=None,
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=7, prompt_tokens_details=None) if usage else None,
    )


def make_tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, function=SimpleNamespace(name=name, arguments=arguments))


@pytest.fixture
def client():
    client = Mock()
    client.chat.completions.create = AsyncMock()
    return client


@pytest.fixture
def provider(client):
    return OpenAIProvider(ModelParameters(model="gpt-test", api_key="sk-test"), client=client)


class TestParseToolArguments:

    def test_valid_json(self):
        assert parse_tool_arguments('{"command": "ls"}') == ({"command": "ls"}, None)

    def test_empty(self):
        assert parse_tool_arguments("") == ({}, None)
        assert parse_tool_arguments(None) == ({}, None)

    def test_repairs_malformed_json(self):
        args, error = parse_tool_arguments('{"command": "ls -la"')
        assert error is None
        assert args == {"command": "ls -la"}

    def test_non_object(self):
        args, error = parse_tool_arguments("[1, 2]")
        assert args == {}
        assert "JSON object" in error


class TestPrepareMessages:

    def test_round_of_tool_use(self, provider):
        history = [
            Message.system("be helpful"),
            Message.user("list files"),
            Message(
                role="assistant",
                content=[
                    TextContent(text="Listing."),
                    ToolCallContent(call_id="c1", tool_name="bash", tool_args={"command": "ls"}),
                ],
            ),
            Message(
                role="user",
                content=[ToolResultContent(call_id="c1", tool_name="bash", content="a.txt")],
            ),
        ]
        messages = provider._prepare_messages(history)
        assert messages[0] == {"role": "system", "content": "be helpful"}
        assert messages[1] == {"role": "user", "content": "list files"}
        assert messages[2]["role"] == "assistant"
        assert messages[2]["content"] == "Listing."
        assert messages[2]["tool_calls"][0]["id"] == "c1"
        assert json.loads(messages[2]["tool_calls"][0]["function"]["arguments"]) == {"command": "ls"}
        assert messages[3] == {"role": "tool", "tool_call_id": "c1", "content": "a.txt"}

    def test_tool_schema_to_native(self, provider):
        native = provider.tool_to_native(BashTool.to_schema())
        assert native["type"] == "function"
        assert native["function"]["name"] == "bash"
        assert "command" in native["function"]["parameters"]["properties"]


class TestCreateCompletion:

    @pytest.mark.asyncio
    async def test_text_response(self, provider, client):
        client.chat.completions.create.return_value = make_response(content="Hello")
        completion = await provider.send_turn([Message.user("hi")])
        assert completion.text == "Hello"
        assert completion.provider == "openai"
        assert completion.model == "gpt-test"
        assert completion.stop_reason == StopReason.COMPLETE
        assert completion.usage.input_tokens == 12
        assert completion.usage.output_tokens == 7

    @pytest.mark.asyncio
    async def test_tool_calls(self, provider, client):
        client.chat.completions.create.return_value = make_response(
            tool_calls=[
                make_tool_call("c1", "bash", '{"command": "pwd"}'),
                make_tool_call("c2", "bash", "not json at all ["),
            ],
            finish_reason="tool_calls",
        )
        completion = await provider.send_turn([Message.user("hi")], [BashTool.to_schema()])
        calls = completion.tool_calls
        assert completion.stop_reason == StopReason.TOOL_USE
        assert calls[0].tool_args == {"command": "pwd"}
        assert calls[0].parse_error is None
        assert calls[1].call_id == "c2"

        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["tools"][0]["function"]["name"] == "bash"
        assert kwargs["parallel_tool_calls"] is False

    @pytest.mark.asyncio
    async def test_no_tools_sends_no_tool_arguments(self, provider, client):
        client.chat.completions.create.return_value = make_response(content="x")
        await provider.send_turn([Message.user("hi")])
        kwargs = client.chat.completions.create.await_args.kwargs
        assert "tools" not in kwargs
        assert "parallel_tool_calls" not in kwargs

    @pytest.mark.asyncio
    async def test_missing_usage_is_estimated(self, provider, client):
        client.chat.completions.create.return_value = make_response(content="Hello there", usage=False)
        # Stand-in encoder so the test does not fetch the tiktoken vocabulary
        provider._tokenizer = Mock(encode=lambda text, disallowed_special=(): text.split())
        completion = await provider.send_turn([Message.user("hi")])
        assert completion.usage.input_tokens > 0
        assert completion.usage.output_tokens > 0

    def test_stop_reasons(self, provider):
        assert provider.map_stop_reason("length") == StopReason.LENGTH
        assert provider.map_stop_reason("tool_calls") == StopReason.TOOL_USE
        assert provider.map_stop_reason("content_filter") == StopReason.ERROR
        assert provider.map_stop_reason("stop") == StopReason.COMPLETE
