# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os
import shlex
import signal
import asyncio
import logging

from typing import ClassVar
from pydantic import Field, PrivateAttr

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, ToolContext, ToolErrorKind

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MAX_OUTPUT_LEN = 16000
TRUNCATED_MESSAGE = (
    "<response clipped><NOTE>To save on context only part of this output has "
    "been shown. You might want to use file redirection or more specific "
    "commands to manage large outputs.</NOTE>"
)
# Seconds a terminated process gets to exit before it is killed
TERMINATE_GRACE_PERIOD = 5.0


def maybe_truncate(content: str, max_len: int = MAX_OUTPUT_LEN) -> str:
    if len(content) <= max_len:
        return content
    keep = max(max_len - len(TRUNCATED_MESSAGE), 0)
    return content[:keep] + TRUNCATED_MESSAGE


class BashTool(BaseTool):
    """Tool for executing shell commands that are guaranteed to return."""

    TOOL_NAME: ClassVar[str] = "bash"
    TOOL_DESCRIPTION: ClassVar[
        str
    ] = """
Execute a bash command and return its stdout, stderr and exit code.

Use this for running scripts, tests, builds and other system commands. Each
call runs in a fresh shell started in the session working directory, so state
such as `cd` or exported variables does not carry over between calls.

Commands that run indefinitely (like servers) are not supported: every command
is terminated once its timeout expires. Output longer than 16000 characters is
clipped; redirect to a file and inspect it in parts when you expect large
output.
"""

    command: str = Field(
        ...,
        description="A single or multi-line bash command to be run in the terminal.",
        min_length=1,
    )
    timeout: float | None = Field(
        default=None,
        description="Optional timeout in seconds. Defaults to the session's tool timeout.",
        gt=0,
        le=3600,
    )
    working_directory: str | None = Field(
        default=None,
        description="Optional directory in which to run the command. Relative paths are resolved against the working directory.",
    )

    _process: asyncio.subprocess.Process | None = PrivateAttr(default=None)

    def __init__(self, context: ToolContext, **data):
        super().__init__(context=context, **data)

    def prepare_command(self) -> str:
        """Wrap the command with a cd into the requested directory."""
        directory = (
            self._context.resolve_path(self.working_directory)
            if self.working_directory
            else self._context.working_dir
        )
        script_lines = [
            f"cd {shlex.quote(str(directory))}",
            self.command,
        ]
        return "\n".join(script_lines)

    async def _stop_process(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        # The command runs in its own session; signal the whole group so that
        # children of the shell go down with it
        try:
            os.killpg(self._process.pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(self._process.wait(), timeout=TERMINATE_GRACE_PERIOD)
        except asyncio.TimeoutError:
            try:
                os.killpg(self._process.pid, signal.SIGKILL)
            except ProcessLookupError:
                pass
            await self._process.wait()

    async def run(self) -> ToolResult:
        if not self.command.strip():
            return ToolResult.failure(self.TOOL_NAME, "Command cannot be empty", ToolErrorKind.VALIDATION)

        timeout = self.timeout or self._context.tool_timeout

        try:
            self._process = await asyncio.create_subprocess_exec(
                "/bin/bash",
                "-c",
                self.prepare_command(),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=True,
            )

            try:
                stdout, stderr = await asyncio.wait_for(
                    self._process.communicate(), timeout=timeout
                )
            except asyncio.TimeoutError:
                await self._stop_process()
                logger.warning(f"Command timed out after {timeout} seconds: {self.command}")
                return ToolResult.failure(
                    self.TOOL_NAME,
                    f"Command timed out after {timeout} seconds and was terminated",
                    ToolErrorKind.TIMEOUT,
                )
            except asyncio.CancelledError:
                await self._stop_process()
                raise

            output_str = f"<stdout>{maybe_truncate(stdout.decode(errors='replace'))}</stdout>\n"
            output_str += f"<stderr>{maybe_truncate(stderr.decode(errors='replace'))}</stderr>\n"
            output_str += f"<exit_code>{self._process.returncode}</exit_code>"

            return ToolResult(
                tool_name=self.TOOL_NAME,
                success=True,
                output=output_str,
            )

        except OSError as e:
            return ToolResult.failure(self.TOOL_NAME, f"Error executing command: {str(e)}")
