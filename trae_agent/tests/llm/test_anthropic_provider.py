# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the Anthropic provider."""
import pytest

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

from src.config import AgentConfig, ModelParameters
from src.llm import create_provider
from src.llm.providers import AnthropicProvider, OpenAIProvider
from src.tools import BashTool
from src.types.llm_types import (
    Message,
    StopReason,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
)


@pytest.fixture
def client():
    client = Mock()
    client.messages.create = AsyncMock()
    return client


@pytest.fixture
def provider(client):
    return AnthropicProvider(ModelParameters(model="claude-test", api_key="sk-ant"), client=client)


def make_response(blocks, stop_reason="end_turn"):
    return SimpleNamespace(
        id="msg_1",
        model="claude-test",
        content=blocks,
        stop_reason=stop_reason,
        stop_sequence=None,
        usage=SimpleNamespace(
            input_tokens=20,
            output_tokens=4,
            cache_creation_input_tokens=0,
            cache_read_input_tokens=3,
        ),
    )


class TestPrepareMessages:

    def test_system_prompt_is_split_out(self, provider):
        system, messages = provider._prepare_messages([Message.system("rules"), Message.user("go")])
        assert system == "rules"
        assert messages == [{"role": "user", "content": [{"type": "text", "text": "go"}]}]

    def test_tool_round_trip_blocks(self, provider):
        history = [
            Message.user("go"),
            Message(
                role="assistant",
                content=[
                    ReasoningContent(text="hmm"),
                    TextContent(text=""),
                    ToolCallContent(call_id="t1", tool_name="bash", tool_args={"command": "ls"}),
                ],
            ),
            Message(
                role="user",
                content=[ToolResultContent(call_id="t1", tool_name="bash", content="boom", is_error=True)],
            ),
        ]
        _, messages = provider._prepare_messages(history)
        # Reasoning and empty text blocks are not replayed
        assert messages[1]["content"] == [
            {"type": "tool_use", "id": "t1", "name": "bash", "input": {"command": "ls"}}
        ]
        assert messages[2]["content"] == [
            {"type": "tool_result", "tool_use_id": "t1", "content": "boom", "is_error": True}
        ]


class TestCreateCompletion:

    @pytest.mark.asyncio
    async def test_parses_blocks_and_usage(self, provider, client):
        client.messages.create.return_value = make_response(
            [
                SimpleNamespace(type="thinking", thinking="let me see"),
                SimpleNamespace(type="text", text="Running ls."),
                SimpleNamespace(type="tool_use", id="t1", name="bash", input={"command": "ls"}),
            ],
            stop_reason="tool_use",
        )
        completion = await provider.send_turn(
            [Message.system("rules"), Message.user("go")], [BashTool.to_schema()]
        )
        assert completion.reasoning == "let me see"
        assert completion.text == "Running ls."
        assert completion.tool_calls[0].tool_args == {"command": "ls"}
        assert completion.stop_reason == StopReason.TOOL_USE
        assert completion.usage.cache_read_input_tokens == 3

        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "rules"
        assert kwargs["tools"][0]["name"] == "bash"
        assert "input_schema" in kwargs["tools"][0]
        assert kwargs["tool_choice"] == {"type": "auto", "disable_parallel_tool_use": True}
        assert "top_p" not in kwargs

    @pytest.mark.asyncio
    async def test_non_object_tool_input(self, provider, client):
        client.messages.create.return_value = make_response(
            [SimpleNamespace(type="tool_use", id="t1", name="bash", input="ls")],
            stop_reason="tool_use",
        )
        completion = await provider.send_turn([Message.user("go")])
        assert completion.tool_calls[0].tool_args == {}
        assert completion.tool_calls[0].parse_error is not None

    def test_stop_reasons(self, provider):
        assert provider.map_stop_reason("max_tokens") == StopReason.LENGTH
        assert provider.map_stop_reason("end_turn") == StopReason.COMPLETE
        assert provider.map_stop_reason("refusal") == StopReason.ERROR


class TestCreateProvider:

    def test_factory_picks_implementation(self):
        config = AgentConfig(
            default_provider="anthropic",
            model_providers={
                "anthropic": ModelParameters(model="claude-test", api_key="sk-ant"),
                "openrouter": ModelParameters(model="x/y", api_key="sk-or", base_url="https://openrouter.ai/api/v1"),
            },
        )
        assert isinstance(create_provider(config), AnthropicProvider)
        other = create_provider(config, "openrouter")
        assert isinstance(other, OpenAIProvider)
        assert other.provider_name() == "openrouter"
