# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Shared fixtures for the `src.*` test modules.

The suite reaches the package under two import roots: `src.*` (with
`trae_agent/` on the path) for the component tests, and `trae_agent.*` for
`tests/test_cli.py`. Each root gets its own copy of module-level state such
as `tool_registry` and `agent_registry`, so objects from one root must not be
mixed with the other. `test_cli.py` therefore uses none of the fixtures below
and defines its own provider.
"""
import pytest

from src.config import AgentConfig, ModelParameters
from src.llm.base import Completion
from src.llm.providers.base_provider import BaseProvider
from src.types.llm_types import Message, StopReason, TextContent, TokenUsage, ToolCallContent
from src.types.error_types import FatalProviderError


# Optional: Define custom command-line options for your markers
def pytest_addoption(parser):
    parser.addoption(
        "--run-llm",
        action="store_true",
        default=False,
        help="Run tests marked with 'uses_llm'",
    )
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run tests marked with 'slow'",
    )


# Skip tests based on markers unless the corresponding option is provided
def pytest_collection_modifyitems(config, items):
    if not config.getoption("--run-llm"):
        skip_llm = pytest.mark.skip(reason="need --run-llm option to run")
        for item in items:
            if "uses_llm" in item.keywords:
                item.add_marker(skip_llm)
    if not config.getoption("--run-slow"):
        skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


class ScriptedProvider(BaseProvider):
    """A provider that replays queued completions (or raises queued errors)
    instead of calling a model. Every request's history is kept for
    inspection."""

    def __init__(self, turns=(), params: ModelParameters | None = None, provider: str = "scripted"):
        super().__init__(
            params or ModelParameters(model="scripted-model", max_retries=2, retry_base_delay=0.0),
            provider,
        )
        self.turns = list(turns)
        self.requests: list[list[Message]] = []

    def queue(self, *turns) -> None:
        self.turns.extend(turns)

    def _prepare_messages(self, messages):
        return messages

    def tool_to_native(self, tool):
        return tool.model_dump()

    async def create_completion(self, messages, tools):
        self.requests.append(list(messages))
        if not self.turns:
            raise FatalProviderError(self.provider, "no scripted turns left")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn


def tool_turn(*calls: tuple[str, dict], text: str = "") -> Completion:
    """An assistant turn requesting the given (tool name, arguments) calls."""
    content = [TextContent(text=text)] if text else []
    for i, (name, args) in enumerate(calls):
        content.append(ToolCallContent(call_id=f"call_{i}", tool_name=name, tool_args=args))
    return Completion(
        provider="scripted",
        model="scripted-model",
        content=content,
        usage=TokenUsage(input_tokens=10, output_tokens=5),
        stop_reason=StopReason.TOOL_USE,
    )


def text_turn(text: str) -> Completion:
    return Completion(
        provider="scripted",
        model="scripted-model",
        content=[TextContent(text=text)],
        usage=TokenUsage(input_tokens=10, output_tokens=5),
    )


@pytest.fixture
def scripted_provider():
    return ScriptedProvider()


@pytest.fixture
def make_tool_turn():
    return tool_turn


@pytest.fixture
def make_text_turn():
    return text_turn


@pytest.fixture
def agent_config():
    return AgentConfig(
        default_provider="scripted",
        max_steps=10,
        model_providers={"scripted": ModelParameters(model="scripted-model")},
    )


@pytest.fixture
def scripted_provider_cls():
    return ScriptedProvider
