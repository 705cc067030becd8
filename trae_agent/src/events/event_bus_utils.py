# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Utility functions for presenting event bus traffic."""

from ..types.tool_types import ToolResult
from ..types.event_types import EventType, Event


async def log_to_stdout(event: Event):
    """Print important events to stdout with clear formatting.

    This is the live view of a session that the CLI shows to the user.
    """

    # Common formatting constants
    max_content_len = 80
    prefix_width = 18

    def truncate(text: str, length: int = max_content_len) -> str:
        """Helper to truncate text and handle newlines"""
        text = text.replace("\n", " ")
        return f"{text[:length]}..." if len(text) > length else text

    def format_output(prefix: str, content: str, metadata: str = "") -> None:
        print(
            f"{prefix:<{prefix_width}s} => {content}{' | ' + metadata if metadata else ''}"
        )

    event_content = truncate(str(event.content))
    step = event.metadata.get("step")
    step_str = f"step {step}" if step is not None else ""

    if event.type == EventType.ASSISTANT_MESSAGE:
        if event.content.strip():
            format_output(event.type.value, event_content, step_str)
    elif event.type == EventType.TOOL_CALL:
        name = event.metadata.get("name", "unknown tool")
        args = truncate(str(event.metadata.get("args", {})))
        format_output(event.type.value, f"{name}, {args}", step_str)
    elif event.type == EventType.TOOL_RESULT:
        result = event.metadata.get("tool_result")
        if not isinstance(result, ToolResult):
            return
        content = f"{result.tool_name}, success: {result.success}, "
        content += f"duration: {result.duration:.1f}"
        detail = result.errors if not result.success else result.output
        if detail:
            content += f", {truncate(str(detail), 50)}"
        format_output(event.type.value, content, step_str)
    elif event.type == EventType.STEP_SUMMARY:
        tags = event.metadata.get("tags_emoji", "")
        format_output(event.type.value, f"{tags} {event_content}".strip(), step_str)
    else:
        format_output(event.type.value, event_content, step_str)
