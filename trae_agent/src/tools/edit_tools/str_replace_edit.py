# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from pathlib import Path
from typing import ClassVar, Literal
from pydantic import Field, model_validator

from ..base_tool import BaseTool
from ...types.tool_types import ToolResult, ToolContext
from ...types.error_types import ToolExecutionError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SNIPPET_LINES = 4


def make_numbered_output(content: str, description: str, first_line: int = 1) -> str:
    numbered = "\n".join(
        f"{i + first_line:6}\t{line}" for i, line in enumerate(content.split("\n"))
    )
    return f"Here's the result of running `cat -n` on {description}:\n{numbered}\n"


class StrReplaceEditTool(BaseTool):
    """Viewing, creating and editing files by exact string replacement."""

    TOOL_NAME: ClassVar[str] = "str_replace_based_edit_tool"
    TOOL_DESCRIPTION: ClassVar[str] = """Custom editing tool for viewing, creating and editing files.

* State is persistent across command calls and discussions with the user
* If `path` is a file, `view` displays the result of applying `cat -n`. If `path` is a directory, `view` lists non-hidden files and directories up to 2 levels deep
* The `create` command cannot be used if the specified `path` already exists as a file
* Relative paths are resolved against the working directory

Notes for using the `str_replace` command:
* The `old_str` parameter should match EXACTLY one or more consecutive lines from the original file. Be mindful of whitespaces!
* If the `old_str` parameter is not unique in the file, the replacement will not be performed. Make sure to include enough context in `old_str` to make it unique
* The `new_str` parameter should contain the edited lines that should replace the `old_str`
"""

    command: Literal["view", "create", "str_replace", "insert"] = Field(
        ...,
        description="The command to run.",
    )
    path: str = Field(
        ...,
        description="Path to the file or directory, e.g. `/repo/file.py` or `/repo`.",
        min_length=1,
    )
    file_text: str | None = Field(
        default=None,
        description="Required for `create`: the content of the file to be created.",
    )
    old_str: str | None = Field(
        default=None,
        description="Required for `str_replace`: the string in `path` to replace.",
    )
    new_str: str | None = Field(
        default=None,
        description="Optional for `str_replace` (defaults to deleting `old_str`); required for `insert`.",
    )
    insert_line: int | None = Field(
        default=None,
        description="Required for `insert`: `new_str` is inserted AFTER this line of `path` (0 inserts at the start).",
    )
    view_range: list[int] | None = Field(
        default=None,
        description="Optional for `view` on a file: [start_line, end_line], 1-indexed; an end of -1 shows all lines from start.",
    )

    def __init__(self, context: ToolContext, **data):
        super().__init__(context=context, **data)

    @model_validator(mode="after")
    def _check_command_arguments(self) -> "StrReplaceEditTool":
        if self.command == "create" and self.file_text is None:
            raise ValueError("`file_text` is required for the `create` command")
        if self.command == "str_replace" and self.old_str is None:
            raise ValueError("`old_str` is required for the `str_replace` command")
        if self.command == "insert":
            if self.insert_line is None:
                raise ValueError("`insert_line` is required for the `insert` command")
            if self.new_str is None:
                raise ValueError("`new_str` is required for the `insert` command")
        if self.view_range is not None and len(self.view_range) != 2:
            raise ValueError("`view_range` must contain exactly two integers")
        return self

    async def run(self) -> ToolResult:
        path = self._context.resolve_path(self.path)

        if self.command == "create":
            output = self.create(path)
        elif not path.exists():
            raise ToolExecutionError(f"The path {path} does not exist. Please provide a valid path.")
        elif self.command == "view":
            output = self.view_dir(path) if path.is_dir() else self.view_file(path)
        elif path.is_dir():
            raise ToolExecutionError(
                f"The path {path} is a directory and only the `view` command can be used on directories"
            )
        elif self.command == "str_replace":
            output = self.str_replace(path)
        else:
            output = self.insert(path)

        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=output)

    # Commands ================================================================

    def view_file(self, path: Path) -> str:
        content = self._read(path)
        if self.view_range is None:
            return make_numbered_output(content, str(path))

        lines = content.split("\n")
        n_lines = len(lines)
        start, end = self.view_range
        if start < 1 or start > n_lines:
            raise ToolExecutionError(
                f"Invalid `view_range`: {self.view_range}. Its first element `{start}` should be within the range of lines of the file: [1, {n_lines}]"
            )
        if end == -1:
            end = n_lines
        elif end < start:
            raise ToolExecutionError(
                f"Invalid `view_range`: {self.view_range}. Its second element `{end}` should be larger or equal than its first `{start}`"
            )
        elif end > n_lines:
            raise ToolExecutionError(
                f"Invalid `view_range`: {self.view_range}. Its second element `{end}` should be smaller than the number of lines in the file: `{n_lines}`"
            )
        return make_numbered_output("\n".join(lines[start - 1 : end]), str(path), start)

    def view_dir(self, path: Path, max_depth: int = 2) -> str:
        entries: list[str] = []

        def walk(directory: Path, depth: int) -> None:
            for child in sorted(directory.iterdir(), key=lambda p: p.name):
                if child.name.startswith("."):
                    continue
                entries.append(f"{child}{'/' if child.is_dir() else ''}")
                if child.is_dir() and depth < max_depth:
                    walk(child, depth + 1)

        walk(path, 1)
        listing = "\n".join([f"{path}/", *entries])
        return (
            f"Here's the files and directories up to {max_depth} levels deep in {path}, "
            f"excluding hidden items:\n{listing}\n"
        )

    def create(self, path: Path) -> str:
        if path.exists():
            raise ToolExecutionError(
                f"File already exists at: {path}. Cannot overwrite files using command `create`."
            )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(self.file_text or "")
        except OSError as e:
            raise ToolExecutionError(f"Failed to create file {path}: {e}") from e
        return f"File created successfully at: {path}"

    def str_replace(self, path: Path) -> str:
        content = self._read(path).expandtabs()
        old_str = (self.old_str or "").expandtabs()
        new_str = (self.new_str or "").expandtabs()

        occurrences = content.count(old_str) if old_str else 0
        if occurrences == 0:
            raise ToolExecutionError(
                f"No replacement was performed, old_str `{self.old_str}` did not appear verbatim in {path}."
            )
        if occurrences > 1:
            lines = [
                idx + 1
                for idx, line in enumerate(content.split("\n"))
                if old_str.split("\n")[0] in line
            ]
            raise ToolExecutionError(
                f"No replacement was performed. Multiple occurrences of old_str `{self.old_str}` in lines {lines}. Please ensure it is unique"
            )

        new_content = content.replace(old_str, new_str)
        self._write(path, new_content)

        replacement_line = content.split(old_str)[0].count("\n")
        start_line = max(0, replacement_line - SNIPPET_LINES)
        end_line = replacement_line + SNIPPET_LINES + new_str.count("\n")
        snippet = "\n".join(new_content.split("\n")[start_line : end_line + 1])

        return (
            f"The file {path} has been edited. "
            + make_numbered_output(snippet, f"a snippet of {path}", start_line + 1)
            + "Review the changes and make sure they are as expected. Edit the file again if necessary."
        )

    def insert(self, path: Path) -> str:
        file_lines = self._read(path).expandtabs().split("\n")
        n_lines = len(file_lines)
        insert_line = self.insert_line or 0
        if insert_line < 0 or insert_line > n_lines:
            raise ToolExecutionError(
                f"Invalid `insert_line` parameter: {insert_line}. It should be within the range of lines of the file: [0, {n_lines}]"
            )

        new_lines = (self.new_str or "").expandtabs().split("\n")
        updated = file_lines[:insert_line] + new_lines + file_lines[insert_line:]
        self._write(path, "\n".join(updated))

        snippet_start = max(0, insert_line - SNIPPET_LINES)
        snippet = "\n".join(
            updated[snippet_start : insert_line + len(new_lines) + SNIPPET_LINES]
        )
        return (
            f"The file {path} has been edited. "
            + make_numbered_output(snippet, "a snippet of the edited file", snippet_start + 1)
            + "Review the changes and make sure they are as expected (correct indentation, no duplicate lines, etc). Edit the file again if necessary."
        )

    # Helpers =================================================================

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise ToolExecutionError(f"Ran into {e} while trying to read {path}") from e

    @staticmethod
    def _write(path: Path, content: str) -> None:
        try:
            path.write_text(content)
        except OSError as e:
            raise ToolExecutionError(f"Ran into {e} while trying to write to {path}") from e
