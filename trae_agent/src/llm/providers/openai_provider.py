# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""OpenAI (and OpenAI-compatible) chat completions provider.

OpenRouter, Doubao and Ollama all expose the same chat API, so they are served
by this provider with a different `base_url`.
"""

import json
import logging
import tiktoken

from typing import Any
from openai import AsyncOpenAI
from json_repair import repair_json

from ..base import Completion
from .base_provider import BaseProvider
from ...config import ModelParameters
from ...types.tool_types import ToolSchema
from ...types.llm_types import (
    Message,
    TokenUsage,
    StopReason,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ToolResultContent,
)

logger = logging.getLogger(__name__)


def parse_tool_arguments(raw: str | None) -> tuple[dict[str, Any], str | None]:
    """Decode a tool call's JSON arguments, repairing them if needed.

    Returns the arguments and, when they could not be turned into an object,
    a description of the problem.
    """
    if raw is None or raw.strip() == "":
        return {}, None
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        logger.info(f"Repairing malformed tool arguments: {raw[:200]}")
        args = repair_json(raw, return_objects=True)
    if not isinstance(args, dict):
        return {}, f"could not parse tool arguments as a JSON object: {raw[:200]}"
    return args, None


class OpenAIProvider(BaseProvider):
    """Provider implementation for OpenAI-compatible chat completions APIs."""

    def __init__(self, params: ModelParameters, provider: str = "openai", client: AsyncOpenAI | None = None):
        super().__init__(params, provider)
        # Retries are handled by BaseProvider.send_turn
        self.client = client or AsyncOpenAI(
            api_key=params.api_key,
            base_url=params.base_url,
            max_retries=0,
        )
        self._tokenizer = None

    @property
    def tokenizer(self):
        if self._tokenizer is None:
            self._tokenizer = tiktoken.get_encoding("cl100k_base")
        return self._tokenizer

    def map_stop_reason(self, finish_reason: str | None) -> StopReason:
        if finish_reason == "length":
            return StopReason.LENGTH
        elif finish_reason in ("tool_calls", "function_call"):
            return StopReason.TOOL_USE
        elif finish_reason == "content_filter":
            return StopReason.ERROR
        else:  # 'stop' or others
            return StopReason.COMPLETE

    def _estimate_tokens(self, text: str) -> int:
        return len(self.tokenizer.encode(text, disallowed_special=()))

    def _create_token_usage(self, response: Any, messages: list[dict], output: str) -> TokenUsage:
        usage = getattr(response, "usage", None)
        if not usage:
            # Some compatible servers omit usage; estimate it instead
            logger.warning(f"Missing usage information from {self.provider}. Estimating with tiktoken")
            prompt = "\n".join(str(m.get("content") or "") for m in messages)
            return TokenUsage(
                input_tokens=self._estimate_tokens(prompt),
                output_tokens=self._estimate_tokens(output),
            )

        details = getattr(usage, "prompt_tokens_details", None)
        cached = getattr(details, "cached_tokens", 0) or 0
        return TokenUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            cache_read_input_tokens=cached,
        )

    def tool_to_native(self, tool: ToolSchema) -> dict:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters,
            },
        }

    def _prepare_messages(self, messages: list[Message]) -> list[dict]:
        oai_messages: list[dict] = []
        for msg in messages:
            if msg.role == "assistant":
                # Reasoning is not sent back; tool results never appear here
                msg_content = ""
                tool_calls = []
                for block in msg.content:
                    if isinstance(block, TextContent):
                        msg_content += block.text
                    elif isinstance(block, ToolCallContent):
                        tool_calls.append({
                            "id": block.call_id,
                            "type": "function",
                            "function": {
                                "name": block.tool_name,
                                "arguments": json.dumps(block.tool_args),
                            },
                        })
                assistant: dict[str, Any] = {"role": "assistant", "content": msg_content or None}
                if tool_calls:
                    assistant["tool_calls"] = tool_calls
                oai_messages.append(assistant)
            else:
                msg_content = ""
                for block in msg.content:
                    if isinstance(block, TextContent):
                        msg_content += block.text
                    elif isinstance(block, ToolResultContent):
                        # Append what we have so far
                        if msg_content != "":
                            oai_messages.append({"role": msg.role, "content": msg_content})
                            msg_content = ""
                        oai_messages.append({
                            "role": "tool",
                            "tool_call_id": block.call_id,
                            "content": block.content,
                        })
                if msg_content != "":
                    oai_messages.append({"role": msg.role, "content": msg_content})

        return oai_messages

    async def create_completion(
        self, messages: list[Message], tools: list[ToolSchema]
    ) -> Completion:
        api_messages = self._prepare_messages(messages)

        args: dict[str, Any] = {
            "messages": api_messages,
            "model": self.params.model,
            "temperature": self.params.temperature,
            "top_p": self.params.top_p,
            "max_tokens": self.params.max_tokens,
        }
        if self.params.stop_sequences:
            args["stop"] = self.params.stop_sequences
        if self.params.candidate_count:
            args["n"] = self.params.candidate_count
        if tools:
            args["tools"] = [self.tool_to_native(t) for t in tools]
            args["parallel_tool_calls"] = self.params.parallel_tool_calls

        response = await self.client.chat.completions.create(**args)

        choice = response.choices[0]
        message = choice.message

        response_content = []
        # First, get any reasoning content
        reasoning = getattr(message, "reasoning_content", None)
        if reasoning:
            response_content.append(ReasoningContent(text=reasoning))
        # Then, get any assistant message
        if message.content:
            response_content.append(TextContent(text=message.content))
        # Finally get any tool / function calls
        for tc in message.tool_calls or []:
            tool_args, parse_error = parse_tool_arguments(tc.function.arguments)
            response_content.append(ToolCallContent(
                call_id=tc.id,
                tool_name=tc.function.name,
                tool_args=tool_args,
                parse_error=parse_error,
            ))

        return Completion(
            id=response.id or "",
            provider=self.provider,
            model=getattr(response, "model", None) or self.params.model,
            content=response_content,
            usage=self._create_token_usage(response, api_messages, message.content or ""),
            stop_reason=self.map_stop_reason(choice.finish_reason),
            raw_response={
                "finish_reason": choice.finish_reason,
                "created": getattr(response, "created", None),
                "system_fingerprint": getattr(response, "system_fingerprint", None),
            },
        )
