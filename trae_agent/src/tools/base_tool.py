# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import logging

from typing import ClassVar, Iterable
from pydantic import PrivateAttr, ValidationError

from ..types.tool_types import ToolInterface, ToolSchema, ToolContext
from ..types.error_types import (
    DuplicateToolError,
    ToolNotFoundError,
    ToolValidationError,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


# Every BaseTool subclass defined anywhere is catalogued here by name. Agents
# pick from this catalogue when building their own ToolRegistry.
tool_registry: dict[str, type["BaseTool"]] = {}


def format_validation_error(error: ValidationError) -> str:
    problems = []
    for err in error.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "arguments"
        problems.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(problems)


class BaseTool(ToolInterface):
    """Abstract base class for all tools"""

    # Class variables for tool metadata
    TOOL_NAME: ClassVar[str]
    TOOL_DESCRIPTION: ClassVar[str]

    _context: ToolContext = PrivateAttr()

    def __init__(self, context: ToolContext, **data):
        super().__init__(**data)
        self._context = context

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        # Intermediate base classes without a name are not tools
        name = getattr(cls, "TOOL_NAME", None)
        if name:
            tool_registry[name] = cls

    # run is still abstract...

    @classmethod
    def to_schema(cls) -> ToolSchema:
        parameters = cls.model_json_schema()
        parameters.pop("title", None)
        parameters.pop("description", None)
        parameters.setdefault("properties", {})
        return ToolSchema(
            name=cls.TOOL_NAME,
            description=cls.TOOL_DESCRIPTION.strip(),
            parameters=parameters,
        )

    @classmethod
    def from_args(cls, context: ToolContext, args: dict) -> "BaseTool":
        """Validate raw arguments against the tool's fields.

        Raises:
            ToolValidationError: the arguments do not match the schema; the
                tool's run() is never reached in that case.
        """
        if not isinstance(args, dict):
            raise ToolValidationError(cls.TOOL_NAME, f"expected an object, got {type(args).__name__}")
        if "context" in args:
            raise ToolValidationError(cls.TOOL_NAME, "context: extra inputs are not permitted")
        try:
            return cls(context=context, **args)
        except ValidationError as e:
            raise ToolValidationError(cls.TOOL_NAME, format_validation_error(e)) from e


class ToolRegistry:
    """The set of tools available to one agent, keyed by name.

    Registration order is preserved, so `list_tools` is stable across calls.
    """

    def __init__(self, tools: Iterable[type[BaseTool]] = ()):
        self._tools: dict[str, type[BaseTool]] = {}
        for tool in tools:
            self.register(tool)

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "ToolRegistry":
        registry = cls()
        for name in names:
            tool_cls = tool_registry.get(name)
            if tool_cls is None:
                raise ToolNotFoundError(name, sorted(tool_registry))
            registry.register(tool_cls)
        return registry

    def register(self, tool: type[BaseTool]) -> None:
        if tool.TOOL_NAME in self._tools:
            raise DuplicateToolError(tool.TOOL_NAME)
        logger.debug(f"Registering tool {tool.TOOL_NAME}")
        self._tools[tool.TOOL_NAME] = tool

    def lookup(self, name: str) -> type[BaseTool]:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name, self.names())
        return tool

    def list_tools(self) -> list[ToolSchema]:
        return [tool.to_schema() for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
