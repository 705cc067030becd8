# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A scratchpad for step-by-step reasoning. Thoughts are kept in the session's
tool context so that revisions and branches can refer back to them.
"""
import logging

from typing import ClassVar
from dataclasses import dataclass, field
from pydantic import Field, model_validator

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, ToolContext

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

STATE_KEY = "sequential_thinking"


@dataclass
class ThoughtData:
    thought: str
    thought_number: int
    total_thoughts: int
    next_thought_needed: bool
    is_revision: bool = False
    revises_thought: int | None = None
    branch_from_thought: int | None = None
    branch_id: str | None = None
    needs_more_thoughts: bool = False


@dataclass
class ThinkingState:
    thought_history: list[ThoughtData] = field(default_factory=list)
    branches: dict[str, list[ThoughtData]] = field(default_factory=dict)


class SequentialThinkingTool(BaseTool):
    TOOL_NAME: ClassVar[str] = "sequential_thinking"
    TOOL_DESCRIPTION: ClassVar[str] = """A tool for dynamic and reflective problem-solving through a sequence of thoughts.

Each thought can build on, question, or revise previous insights as understanding deepens. Use it to:
- break down complex problems into steps
- plan and design with room for revision
- generate a hypothesis and verify it against the previous thoughts

You can adjust `total_thoughts` up or down as you progress, revise earlier thoughts with `is_revision`, and branch off with `branch_from_thought` and `branch_id`. Set `next_thought_needed` to false only when you are done thinking and have a satisfactory answer.
"""

    thought: str = Field(
        ...,
        description="Your current thinking step, including analysis, hypotheses, or revisions.",
        min_length=1,
    )
    thought_number: int = Field(
        ..., description="Current thought number in the sequence.", ge=1
    )
    total_thoughts: int = Field(
        ..., description="Current estimate of the total number of thoughts needed.", ge=1
    )
    next_thought_needed: bool = Field(
        ..., description="Whether another thought step is needed."
    )
    is_revision: bool = Field(
        default=False, description="Whether this thought revises previous thinking."
    )
    revises_thought: int | None = Field(
        default=None, description="Which thought number is being reconsidered.", ge=1
    )
    branch_from_thought: int | None = Field(
        default=None, description="The thought number this branch starts from.", ge=1
    )
    branch_id: str | None = Field(
        default=None, description="An identifier for the current branch of thinking."
    )
    needs_more_thoughts: bool = Field(
        default=False,
        description="Set when reaching the end but realising more thoughts are needed.",
    )

    def __init__(self, context: ToolContext, **data):
        super().__init__(context=context, **data)

    @model_validator(mode="after")
    def _check_revision(self) -> "SequentialThinkingTool":
        if self.is_revision and self.revises_thought is None:
            raise ValueError("`revises_thought` is required when `is_revision` is true")
        return self

    def _state(self) -> ThinkingState:
        return self._context.state.setdefault(STATE_KEY, ThinkingState())

    def _format_thought(self, data: ThoughtData) -> str:
        if data.is_revision:
            prefix = f"Revision (revising thought {data.revises_thought})"
        elif data.branch_from_thought:
            prefix = f"Branch (from thought {data.branch_from_thought}, ID: {data.branch_id})"
        else:
            prefix = "Thought"
        return f"{prefix} {data.thought_number}/{data.total_thoughts}: {data.thought}"

    async def run(self) -> ToolResult:
        state = self._state()

        data = ThoughtData(
            thought=self.thought,
            thought_number=self.thought_number,
            # The estimate grows with the sequence
            total_thoughts=max(self.total_thoughts, self.thought_number),
            next_thought_needed=self.next_thought_needed,
            is_revision=self.is_revision,
            revises_thought=self.revises_thought,
            branch_from_thought=self.branch_from_thought,
            branch_id=self.branch_id,
            needs_more_thoughts=self.needs_more_thoughts,
        )

        state.thought_history.append(data)
        if data.branch_from_thought and data.branch_id:
            state.branches.setdefault(data.branch_id, []).append(data)

        logger.info(self._format_thought(data))

        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output={
                "thought_number": data.thought_number,
                "total_thoughts": data.total_thoughts,
                "next_thought_needed": data.next_thought_needed,
                "branches": list(state.branches),
                "thought_history_length": len(state.thought_history),
            },
        )
