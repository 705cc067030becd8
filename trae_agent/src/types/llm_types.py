# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os

from enum import Enum
from typing import Any, Literal, Union
from pydantic import BaseModel, Field


class StopReason(str, Enum):
    """Why the provider stopped generating."""

    COMPLETE = "complete"
    LENGTH = "length"
    TOOL_USE = "tool_use"
    ERROR = "error"


class TokenUsage(BaseModel):
    """Token counts reported by a provider for one or more requests."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_creation_input_tokens=self.cache_creation_input_tokens
            + other.cache_creation_input_tokens,
            cache_read_input_tokens=self.cache_read_input_tokens
            + other.cache_read_input_tokens,
        )

    def __str__(self) -> str:
        return f"{self.input_tokens} in / {self.output_tokens} out"


# Content blocks ==============================================================


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str

    def __str__(self) -> str:
        return self.text


class ReasoningContent(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str

    def __str__(self) -> str:
        return self.text


class ToolCallContent(BaseModel):
    """A single tool call requested by the model.

    `parse_error` is set by the provider when the raw argument payload could
    not be turned into an object; such calls never reach tool logic.
    """

    type: Literal["tool_call"] = "tool_call"
    call_id: str = Field(default_factory=lambda: f"call_{os.urandom(6).hex()}")
    tool_name: str
    tool_args: dict[str, Any] = Field(default_factory=dict)
    parse_error: str | None = None

    def __str__(self) -> str:
        return f"{self.tool_name}({self.tool_args})"


class ToolResultContent(BaseModel):
    type: Literal["tool_result"] = "tool_result"
    call_id: str
    tool_name: str
    content: str
    is_error: bool = False

    def __str__(self) -> str:
        return self.content


ContentTypes = Union[TextContent, ReasoningContent, ToolCallContent, ToolResultContent]


class Message(BaseModel):
    """A message in the conversation history.

    Roles are `system`, `user` and `assistant`; tool results travel in a
    `user` message made of ToolResultContent blocks, one per answered call.
    """

    role: Literal["system", "user", "assistant"]
    content: list[ContentTypes] = Field(default_factory=list)

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", content=[TextContent(text=text)])

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role="system", content=[TextContent(text=text)])

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextContent))

    @property
    def tool_calls(self) -> list[ToolCallContent]:
        return [b for b in self.content if isinstance(b, ToolCallContent)]

    @property
    def tool_results(self) -> list[ToolResultContent]:
        return [b for b in self.content if isinstance(b, ToolResultContent)]

    def __str__(self) -> str:
        parts = [f"Message from role={self.role}"]
        for c in self.content:
            if isinstance(c, TextContent):
                parts.append(f"Text {'-'*10}\n{c.text}")
            elif isinstance(c, ReasoningContent):
                parts.append(f"Reasoning {'-'*10}\n{c.text}")
            elif isinstance(c, ToolCallContent):
                parts.append(f"{'-'*10}\nTool call {c.tool_name} (id: {c.call_id}): {str(c.tool_args)}\n{'-'*10}")
            elif isinstance(c, ToolResultContent):
                parts.append(f"{'-'*10}\nTool result {c.tool_name} (id: {c.call_id}): {c.content}\n{'-'*10}")
        return "\n".join(parts)
