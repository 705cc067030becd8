# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Anthropic Messages API provider."""

import logging

from typing import Any
from anthropic import AsyncAnthropic

from ..base import Completion
from .base_provider import BaseProvider
from ...config import ModelParameters
from ...types.tool_types import ToolSchema
from ...types.llm_types import (
    Message,
    TokenUsage,
    StopReason,
    ContentTypes,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    """Provider implementation for Anthropic's Claude models."""

    def __init__(self, params: ModelParameters, provider: str = "anthropic", client: AsyncAnthropic | None = None):
        super().__init__(params, provider)
        # Retries are handled by BaseProvider.send_turn
        self.client = client or AsyncAnthropic(
            api_key=params.api_key,
            base_url=params.base_url,
            max_retries=0,
        )

    def map_stop_reason(self, raw_stop_reason: str | None) -> StopReason:
        if raw_stop_reason == "max_tokens":
            return StopReason.LENGTH
        elif raw_stop_reason == "tool_use":
            return StopReason.TOOL_USE
        elif raw_stop_reason in ("end_turn", "stop_sequence", None):
            return StopReason.COMPLETE
        else:
            return StopReason.ERROR

    def _create_token_usage(self, usage: Any) -> TokenUsage:
        if usage is None:
            logger.warning("Missing usage information from Anthropic API response. Setting to 0")
            return TokenUsage()
        return TokenUsage(
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            cache_creation_input_tokens=getattr(usage, "cache_creation_input_tokens", 0) or 0,
            cache_read_input_tokens=getattr(usage, "cache_read_input_tokens", 0) or 0,
        )

    def tool_to_native(self, tool: ToolSchema) -> dict:
        return {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.parameters,
        }

    def _content_mapping(self, block: ContentTypes) -> dict | None:
        """Maps our message content types, into provider-specific message formats"""
        if isinstance(block, TextContent):
            # The API rejects empty text blocks
            return {"type": "text", "text": block.text} if block.text else None
        elif isinstance(block, ReasoningContent):
            # Thinking blocks cannot be replayed without their signature
            return None
        elif isinstance(block, ToolCallContent):
            return {"type": "tool_use", "id": block.call_id, "name": block.tool_name, "input": block.tool_args}
        elif isinstance(block, ToolResultContent):
            return {"type": "tool_result", "tool_use_id": block.call_id, "content": block.content,
                    **({"is_error": True} if block.is_error else {})}
        else:
            raise ValueError(f"Unhandled content type in provider Anthropic: {block}")

    def _prepare_messages(self, messages: list[Message]) -> tuple[str | None, list[dict]]:
        """Split out the system prompt and map the remaining messages.

        Returns:
            Tuple of (system_prompt, anthropic_messages)
        """
        system_parts: list[str] = []
        anthropic_messages = []

        for msg in messages:
            if msg.role == "system":
                system_parts.append(msg.text)
                continue
            content = [c for c in (self._content_mapping(b) for b in msg.content) if c is not None]
            if not content:
                continue
            anthropic_messages.append({"role": msg.role, "content": content})

        return ("\n\n".join(system_parts) or None), anthropic_messages

    async def create_completion(
        self, messages: list[Message], tools: list[ToolSchema]
    ) -> Completion:
        system_prompt, anthropic_messages = self._prepare_messages(messages)

        args: dict[str, Any] = {
            "messages": anthropic_messages,
            "model": self.params.model,
            "max_tokens": self.params.max_tokens,
            "temperature": self.params.temperature,
        }
        if system_prompt:
            args["system"] = system_prompt
        if self.params.top_p < 1.0:
            args["top_p"] = self.params.top_p
        if self.params.top_k > 0:
            args["top_k"] = self.params.top_k
        if self.params.stop_sequences:
            args["stop_sequences"] = self.params.stop_sequences
        if tools:
            args["tools"] = [self.tool_to_native(t) for t in tools]
            if not self.params.parallel_tool_calls:
                args["tool_choice"] = {"type": "auto", "disable_parallel_tool_use": True}

        response = await self.client.messages.create(**args)

        response_content = []
        for block in response.content:
            match block.type:
                case "text":
                    response_content.append(TextContent(text=block.text))
                case "tool_use":
                    tool_args = block.input if isinstance(block.input, dict) else {}
                    response_content.append(
                        ToolCallContent(
                            call_id=block.id,
                            tool_name=block.name,
                            tool_args=tool_args,
                            parse_error=None if isinstance(block.input, dict)
                            else f"tool input is not an object: {block.input!r}",
                        )
                    )
                case "thinking":
                    response_content.append(ReasoningContent(text=block.thinking))
                case _:
                    logger.warning(f"Unhandled response block type {block.type} in Anthropic completion")

        return Completion(
            id=response.id,
            provider=self.provider,
            model=response.model or self.params.model,
            content=response_content,
            usage=self._create_token_usage(response.usage),
            stop_reason=self.map_stop_reason(response.stop_reason),
            raw_response={
                "stop_reason": getattr(response, "stop_reason", None),
                "stop_sequence": getattr(response, "stop_sequence", None),
            },
        )
