# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A module of Agent tools
"""

from .base_tool import BaseTool, ToolRegistry, tool_registry
from .executor import ToolExecutor
from .bash_tool import BashTool
from .edit_tools import StrReplaceEditTool
from .json_edit_tool import JSONEditTool
from .sequential_thinking import SequentialThinkingTool
from .task_done import TaskDoneTool, TASK_DONE_TOOL_NAME

toolkits: dict[str, list[type[BaseTool]]] = dict(
    coding=[
        BashTool,
        StrReplaceEditTool,
        JSONEditTool,
        SequentialThinkingTool,
        TaskDoneTool,
    ]
)

DEFAULT_TOOL_NAMES: list[str] = [t.TOOL_NAME for t in toolkits["coding"]]

__all__ = [
    "BaseTool",
    "ToolRegistry",
    "ToolExecutor",
    "tool_registry",
    "toolkits",
    "DEFAULT_TOOL_NAMES",
    "BashTool",
    "StrReplaceEditTool",
    "JSONEditTool",
    "SequentialThinkingTool",
    "TaskDoneTool",
    "TASK_DONE_TOOL_NAME",
]
