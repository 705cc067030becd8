# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
A tool for structured edits of JSON files, addressed by simple JSONPath
expressions: `$`, `.key`, `['key']`, `[index]` and `[-]` (list append, only
valid for `add`).
"""
import re
import json
import logging

from pathlib import Path
from typing import Any, ClassVar, Literal
from pydantic import Field, model_validator

from .base_tool import BaseTool
from ..types.tool_types import ToolResult, ToolContext
from ..types.error_types import ToolExecutionError

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

APPEND = "-"

_SEGMENT = re.compile(
    r"""\.(?P<key>[A-Za-z_][\w\-]*)
      | \[(?P<index>-?\d+)\]
      | \['(?P<squoted>[^']*)'\]
      | \["(?P<dquoted>[^"]*)"\]
      | \[(?P<append>-)\]""",
    re.VERBOSE,
)


def parse_json_path(path: str) -> list[str | int]:
    """Split a JSONPath expression into object keys and list indices."""
    path = path.strip()
    if not path.startswith("$"):
        raise ToolExecutionError(f"Invalid JSONPath '{path}': expressions must start with '$'")

    tokens: list[str | int] = []
    pos = 1
    while pos < len(path):
        match = _SEGMENT.match(path, pos)
        if match is None:
            raise ToolExecutionError(f"Invalid JSONPath '{path}': cannot parse from '{path[pos:]}'")
        if match.group("key") is not None:
            tokens.append(match.group("key"))
        elif match.group("index") is not None:
            tokens.append(int(match.group("index")))
        elif match.group("squoted") is not None:
            tokens.append(match.group("squoted"))
        elif match.group("dquoted") is not None:
            tokens.append(match.group("dquoted"))
        else:
            tokens.append(APPEND)
        pos = match.end()
    return tokens


class _Missing:
    pass


MISSING = _Missing()


def get_at(document: Any, tokens: list[str | int]) -> Any:
    """The value at the given path, or MISSING."""
    current = document
    for token in tokens:
        if isinstance(current, dict) and isinstance(token, str) and token in current:
            current = current[token]
        elif isinstance(current, list) and isinstance(token, int) and -len(current) <= token < len(current):
            current = current[token]
        else:
            return MISSING
    return current


class JSONEditTool(BaseTool):
    TOOL_NAME: ClassVar[str] = "json_edit_tool"
    TOOL_DESCRIPTION: ClassVar[str] = """Tool for viewing and editing JSON files with JSONPath expressions.

Operations:
* `view`: show the whole file, or the value at `json_path`
* `set`: replace the existing value at `json_path` with `value`
* `add`: add `value` under a new object key, or insert it into a list at an index; use `[-]` to append to a list
* `remove`: delete the key or list element at `json_path`

Supported JSONPath syntax: `$` (root), `.key`, `['key with spaces']`, `[0]` (list index), `[-]` (append, `add` only).
Example: `$.dependencies.numpy`, `$.items[2].name`, `$.items[-]`.
"""

    operation: Literal["view", "set", "add", "remove"] = Field(
        ..., description="The operation to perform on the JSON file."
    )
    file_path: str = Field(
        ...,
        description="Path to the JSON file. Relative paths are resolved against the working directory.",
        min_length=1,
    )
    json_path: str | None = Field(
        default=None,
        description="JSONPath expression addressing the target. Required for set, add and remove.",
    )
    value: Any = Field(
        default=None,
        description="The JSON value to set or add. Required for set and add.",
    )
    pretty_print: bool = Field(
        default=True, description="Whether to indent the output of view operations."
    )

    def __init__(self, context: ToolContext, **data):
        super().__init__(context=context, **data)

    @model_validator(mode="after")
    def _check_operation_arguments(self) -> "JSONEditTool":
        if self.operation in ("set", "add", "remove") and not self.json_path:
            raise ValueError(f"`json_path` is required for the `{self.operation}` operation")
        if self.operation in ("set", "add") and "value" not in self.model_fields_set:
            raise ValueError(f"`value` is required for the `{self.operation}` operation")
        return self

    async def run(self) -> ToolResult:
        path = self._context.resolve_path(self.file_path)
        document = self._load(path)

        if self.operation == "view":
            output = self.view(document)
        else:
            tokens = parse_json_path(self.json_path or "$")
            if self.operation == "set":
                document = self.set_value(document, tokens)
            elif self.operation == "add":
                document = self.add_value(document, tokens)
            else:
                document = self.remove_value(document, tokens)
            self._save(path, document)
            output = f"Successfully applied '{self.operation}' operation at '{self.json_path}' in {path}"

        return ToolResult(tool_name=self.TOOL_NAME, success=True, output=output)

    def _dumps(self, value: Any) -> str:
        return json.dumps(value, indent=2 if self.pretty_print else None, ensure_ascii=False)

    def view(self, document: Any) -> str:
        if not self.json_path:
            return self._dumps(document)
        value = get_at(document, parse_json_path(self.json_path))
        if value is MISSING:
            return f"No value found at JSONPath '{self.json_path}'"
        return self._dumps(value)

    def _parent(self, document: Any, tokens: list[str | int]) -> tuple[Any, str | int]:
        if not tokens:
            raise ToolExecutionError(f"The root '$' cannot be the target of a '{self.operation}' operation")
        parent = get_at(document, tokens[:-1])
        if parent is MISSING or not isinstance(parent, (dict, list)):
            raise ToolExecutionError(f"No object or array found at the parent of '{self.json_path}'")
        return parent, tokens[-1]

    def set_value(self, document: Any, tokens: list[str | int]) -> Any:
        if not tokens:
            return self.value
        if get_at(document, tokens) is MISSING:
            raise ToolExecutionError(
                f"No value found at '{self.json_path}'. Use the 'add' operation to create new values."
            )
        parent, last = self._parent(document, tokens)
        parent[last] = self.value
        return document

    def add_value(self, document: Any, tokens: list[str | int]) -> Any:
        parent, last = self._parent(document, tokens)
        if isinstance(parent, dict):
            if not isinstance(last, str) or last == APPEND:
                raise ToolExecutionError(f"'{self.json_path}' addresses an object; use a key, not an index")
            if last in parent:
                raise ToolExecutionError(
                    f"Key '{last}' already exists at '{self.json_path}'. Use the 'set' operation to replace it."
                )
            parent[last] = self.value
        else:
            if last == APPEND:
                parent.append(self.value)
            elif isinstance(last, int) and 0 <= last <= len(parent):
                parent.insert(last, self.value)
            else:
                raise ToolExecutionError(
                    f"Index {last} is out of range for an array of length {len(parent)}"
                )
        return document

    def remove_value(self, document: Any, tokens: list[str | int]) -> Any:
        if get_at(document, tokens) is MISSING:
            raise ToolExecutionError(f"No value found at '{self.json_path}'")
        parent, last = self._parent(document, tokens)
        if isinstance(parent, dict):
            del parent[last]
        else:
            parent.pop(last)
        return document

    @staticmethod
    def _load(path: Path) -> Any:
        if not path.is_file():
            raise ToolExecutionError(f"File not found: {path}")
        try:
            return json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Invalid JSON in file {path}: {e}") from e

    @staticmethod
    def _save(path: Path, document: Any) -> None:
        try:
            path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n")
        except OSError as e:
            raise ToolExecutionError(f"Failed to write {path}: {e}") from e
