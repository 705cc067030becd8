# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the JSON edit tool."""
import json
import pytest

from src.tools.json_edit_tool import JSONEditTool, parse_json_path, APPEND
from src.types.tool_types import ToolContext
from src.types.error_types import ToolExecutionError, ToolValidationError


@pytest.fixture
def context(tmp_path):
    return ToolContext(working_dir=tmp_path)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"name": "demo", "deps": ["a", "b"], "opts": {"debug": False}}))
    return path


def run_tool(context, **args):
    return JSONEditTool.from_args(context, args).run()


class TestParseJsonPath:

    def test_segments(self):
        assert parse_json_path("$") == []
        assert parse_json_path("$.opts.debug") == ["opts", "debug"]
        assert parse_json_path("$.deps[1]") == ["deps", 1]
        assert parse_json_path("$['key with spaces'][-1]") == ["key with spaces", -1]
        assert parse_json_path("$.deps[-]") == ["deps", APPEND]

    def test_invalid(self):
        with pytest.raises(ToolExecutionError):
            parse_json_path("opts.debug")
        with pytest.raises(ToolExecutionError):
            parse_json_path("$.opts..debug")


class TestJSONEditTool:

    @pytest.mark.asyncio
    async def test_view(self, context, config_file):
        result = await run_tool(context, operation="view", file_path="config.json", json_path="$.deps")
        assert json.loads(result.output) == ["a", "b"]

        result = await run_tool(context, operation="view", file_path="config.json", json_path="$.missing")
        assert "No value found" in result.output

    @pytest.mark.asyncio
    async def test_set(self, context, config_file):
        await run_tool(context, operation="set", file_path="config.json", json_path="$.opts.debug", value=True)
        assert json.loads(config_file.read_text())["opts"]["debug"] is True

        with pytest.raises(ToolExecutionError, match="add"):
            await run_tool(context, operation="set", file_path="config.json", json_path="$.opts.new", value=1)

    @pytest.mark.asyncio
    async def test_add(self, context, config_file):
        await run_tool(context, operation="add", file_path="config.json", json_path="$.opts.level", value=3)
        await run_tool(context, operation="add", file_path="config.json", json_path="$.deps[-]", value="c")
        await run_tool(context, operation="add", file_path="config.json", json_path="$.deps[0]", value="z")
        document = json.loads(config_file.read_text())
        assert document["opts"]["level"] == 3
        assert document["deps"] == ["z", "a", "b", "c"]

        with pytest.raises(ToolExecutionError, match="already exists"):
            await run_tool(context, operation="add", file_path="config.json", json_path="$.name", value="x")

    @pytest.mark.asyncio
    async def test_remove(self, context, config_file):
        await run_tool(context, operation="remove", file_path="config.json", json_path="$.deps[0]")
        await run_tool(context, operation="remove", file_path="config.json", json_path="$.name")
        document = json.loads(config_file.read_text())
        assert document == {"deps": ["b"], "opts": {"debug": False}}

        with pytest.raises(ToolExecutionError):
            await run_tool(context, operation="remove", file_path="config.json", json_path="$.name")

    @pytest.mark.asyncio
    async def test_invalid_file(self, context, tmp_path):
        (tmp_path / "broken.json").write_text("{not json")
        with pytest.raises(ToolExecutionError, match="Invalid JSON"):
            await run_tool(context, operation="view", file_path="broken.json")
        with pytest.raises(ToolExecutionError, match="File not found"):
            await run_tool(context, operation="view", file_path="absent.json")

    def test_required_arguments(self, context):
        with pytest.raises(ToolValidationError, match="json_path"):
            JSONEditTool.from_args(context, {"operation": "remove", "file_path": "config.json"})
        with pytest.raises(ToolValidationError, match="value"):
            JSONEditTool.from_args(context, {"operation": "set", "file_path": "c.json", "json_path": "$.a"})
