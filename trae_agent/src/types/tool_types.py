# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import os
import json

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .llm_types import ToolResultContent


class ToolErrorKind(str, Enum):
    """Where a failed tool result originated."""

    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    EXECUTION = "execution"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    PATCH_REQUIRED = "patch_required"


class ToolResult(BaseModel):
    """Represents the result of a tool execution.

    A result carries either an output (on success) or an error description
    (on failure), never both.
    """

    tool_name: str
    success: bool
    call_id: str | None = None
    duration: float = 0.0  # on tool error paths, duration is often 0
    output: dict[str, Any] | str | None = None
    warnings: str | None = None
    errors: str | None = None
    error_kind: ToolErrorKind | None = None
    invocation_id: str = Field(default_factory=lambda: os.urandom(4).hex())

    @model_validator(mode="after")
    def _output_xor_error(self) -> "ToolResult":
        if self.success and (self.errors is not None or self.error_kind is not None):
            raise ValueError("A successful tool result cannot carry an error")
        if not self.success:
            if self.output is not None:
                raise ValueError("A failed tool result cannot carry an output")
            if self.errors is None:
                raise ValueError("A failed tool result must describe its error")
            if self.error_kind is None:
                self.error_kind = ToolErrorKind.EXECUTION
        return self

    @classmethod
    def failure(
        cls,
        tool_name: str,
        errors: str,
        kind: ToolErrorKind = ToolErrorKind.EXECUTION,
        call_id: str | None = None,
    ) -> "ToolResult":
        return cls(
            tool_name=tool_name,
            success=False,
            errors=errors,
            error_kind=kind,
            call_id=call_id,
        )

    def __str__(self):
        str_output = self.output if isinstance(self.output, str) else None
        if isinstance(self.output, dict):
            str_output = json.dumps(self.output, indent=2)

        tool_response_str = "<TOOL_RESPONSE>"
        tool_response_str += (
            f"\n<STATUS>{'SUCCESS' if self.success else 'FAILURE'}</STATUS>"
        )
        if str_output is not None:
            tool_response_str += f"\n<OUTPUT>{str_output}</OUTPUT>"
        if self.warnings is not None:
            tool_response_str += f"\n<WARNINGS>{self.warnings}</WARNINGS>"
        if self.errors is not None:
            tool_response_str += f"\n<ERRORS>{self.errors}</ERRORS>"
        tool_response_str += "\n</TOOL_RESPONSE>"

        return tool_response_str

    def to_content(self) -> ToolResultContent:
        """The block fed back to the model for this result."""
        return ToolResultContent(
            call_id=self.call_id or self.invocation_id,
            tool_name=self.tool_name,
            content=str(self),
            is_error=not self.success,
        )


class ToolSchema(BaseModel):
    """The published description of a tool, used for prompting and validation."""

    name: str
    description: str
    parameters: dict[str, Any]


class ToolContext(BaseModel):
    """Per-session state shared by the tools of one agent.

    The working directory is the only resource tools share; `state` holds
    tool-private data that must survive between calls (e.g. thought history).
    """

    working_dir: Path = Field(default_factory=Path.cwd)
    tool_timeout: float = 120.0
    state: dict[str, Any] = Field(default_factory=dict)

    def resolve_path(self, path: str | Path) -> Path:
        p = Path(path).expanduser()
        return p if p.is_absolute() else (self.working_dir / p)


class ToolInterface(BaseModel, ABC):
    """Abstract interface for all tools"""

    # Class variables
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    model_config = ConfigDict(extra="forbid")

    @abstractmethod
    async def run(self) -> ToolResult:
        """Execute the tool's functionality"""
        pass

    @classmethod
    @abstractmethod
    def to_schema(cls) -> ToolSchema:
        """Describe the tool's arguments for the provider and the executor."""
        pass
