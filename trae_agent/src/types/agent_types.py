# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from enum import Enum
from typing import Optional
from pathlib import Path
from datetime import datetime
from pydantic import BaseModel, Field

from .llm_types import Message, TokenUsage


class AgentStatus(str, Enum):
    """Possible states of an agent execution."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STEP_LIMIT_EXCEEDED = "step_limit_exceeded"

    @property
    def is_terminal(self) -> bool:
        return self in (
            AgentStatus.COMPLETED,
            AgentStatus.FAILED,
            AgentStatus.STEP_LIMIT_EXCEEDED,
        )


class Task(BaseModel):
    """A user-supplied goal and the constraints it runs under."""

    description: str = Field(..., min_length=1)
    working_dir: Optional[Path] = None
    max_steps: Optional[int] = Field(default=None, ge=1)
    must_patch: bool = False
    base_commit: Optional[str] = None

    def recorder_extras(self) -> dict:
        extras = {"must_patch": self.must_patch}
        if self.working_dir is not None:
            extras["project_path"] = str(self.working_dir)
        if self.base_commit:
            extras["base_commit"] = self.base_commit
        return extras


class AgentState(BaseModel):
    """
    The observable state of an agent.

    The history is append-only while a run is in progress. `reason` is always
    set for a non-successful terminal status.
    """

    status: AgentStatus = AgentStatus.IDLE
    step: int = 0
    history: list[Message] = Field(default_factory=list)
    success: bool = False
    summary: Optional[str] = None
    reason: Optional[str] = None
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
    patch: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration if completed."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return None

    def __str__(self) -> str:
        parts = [f"Status: {self.status.value}", f"Steps: {self.step}"]
        if self.summary:
            parts.append(f"Summary: {self.summary}")
        if self.reason:
            parts.append(f"Reason: {self.reason}")
        parts.append(f"Tokens: {self.token_usage}")
        if self.duration_seconds is not None:
            parts.append(f"Duration: {self.duration_seconds:.1f}s")
        return "\n".join(parts)
