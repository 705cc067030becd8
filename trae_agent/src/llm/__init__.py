# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""LLM integration module.

All providers share one contract: `send_turn(history, tools)` returns the
model's next turn as a Completion, and `provider_name()` identifies the
vendor. `create_provider` picks the implementation from the configuration.
"""

import logging

from .base import Completion, TimingInfo
from .providers import BaseProvider, OpenAIProvider, AnthropicProvider
from ..config import AgentConfig, ModelParameters

# Quieten LLM API call logs to make stdout more useful
logging.getLogger("httpx").setLevel(logging.WARNING)


def create_provider(
    config: AgentConfig,
    provider: str | None = None,
    params: ModelParameters | None = None,
) -> BaseProvider:
    """Instantiate the provider named in the config (or `provider`)."""
    provider = provider or config.default_provider
    params = params or config.provider_params(provider)
    if provider == "anthropic":
        return AnthropicProvider(params, provider)
    return OpenAIProvider(params, provider)


__all__ = [
    "Completion",
    "TimingInfo",
    "BaseProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "create_provider",
]
