# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base models and shared functionality for LLM interactions."""

from typing import Any
from datetime import datetime, timedelta
from pydantic import BaseModel, Field

from ..types.llm_types import (
    Message,
    TokenUsage,
    StopReason,
    TextContent,
    ReasoningContent,
    ToolCallContent,
    ContentTypes,
)


class TimingInfo(BaseModel):
    """Timing information for LLM interactions."""

    start_time: datetime = Field(description="When the request started")
    end_time: datetime = Field(description="When the response completed")
    total_duration: timedelta = Field(description="Total duration of the request")

    def __str__(self) -> str:
        fmt = "%Y-%m-%d %H:%M:%S"
        return (
            f"- Start {self.start_time.strftime(fmt)}, End {self.end_time.strftime(fmt)}\n"
            f"- Duration: {self.total_duration}"
        )


class Completion(BaseModel):
    """One assistant turn as returned by a provider.

    Every completion names the provider and model that produced it, so that
    trajectory entries can be attributed.
    """

    id: str = ""
    provider: str
    model: str
    content: list[ContentTypes] = Field(default_factory=list)
    usage: TokenUsage = Field(default_factory=TokenUsage)
    stop_reason: StopReason = StopReason.COMPLETE
    timing: TimingInfo | None = None
    attempts: int = 1
    raw_response: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, TextContent))

    @property
    def reasoning(self) -> str:
        return "".join(b.text for b in self.content if isinstance(b, ReasoningContent))

    @property
    def tool_calls(self) -> list[ToolCallContent]:
        return [b for b in self.content if isinstance(b, ToolCallContent)]

    def to_message(self) -> Message:
        return Message(role="assistant", content=list(self.content))

    def __str__(self) -> str:
        parts = [
            f"Completion from {self.provider}/{self.model} (stop: {self.stop_reason.value})",
            str(self.to_message()),
            f"Usage: {self.usage}",
        ]
        if self.timing:
            parts.append(str(self.timing))
        return "\n".join(parts)
