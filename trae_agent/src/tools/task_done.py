# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
from typing import ClassVar
from pydantic import Field

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, ToolContext

TASK_DONE_TOOL_NAME = "task_done"


class TaskDoneTool(BaseTool):
    """The reserved tool through which the model signals completion.

    The agent loop recognises calls to this tool by name; running it only
    acknowledges the signal.
    """

    TOOL_NAME: ClassVar[str] = TASK_DONE_TOOL_NAME
    TOOL_DESCRIPTION: ClassVar[str] = """Report that the task is complete.

Call this tool once, on its own, when you are sure the task has been solved
and verified. If the task requires code changes, they must already be written
to the working directory: completion is rejected when no change is found.
"""

    summary: str | None = Field(
        default=None,
        description="A short summary of what was done to complete the task.",
    )

    def __init__(self, context: ToolContext, **data):
        super().__init__(context=context, **data)

    async def run(self) -> ToolResult:
        summary = (self.summary or "").strip() or "No summary provided."
        return ToolResult(
            tool_name=self.TOOL_NAME,
            success=True,
            output=f"Task completion signaled. Summary: {summary}",
        )
