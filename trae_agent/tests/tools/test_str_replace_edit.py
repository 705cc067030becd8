# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for the string replacement file editor."""
import pytest

from src.tools.edit_tools import StrReplaceEditTool
from src.types.tool_types import ToolContext
from src.types.error_types import ToolExecutionError, ToolValidationError


@pytest.fixture
def context(tmp_path):
    return ToolContext(working_dir=tmp_path)


def edit(context, **args) -> StrReplaceEditTool:
    return StrReplaceEditTool.from_args(context, args)


class TestStrReplaceEditTool:

    @pytest.mark.asyncio
    async def test_create_and_view(self, context, tmp_path):
        result = await edit(context, command="create", path="pkg/hello.py", file_text="print('hi')\nx = 1").run()
        assert result.success
        assert (tmp_path / "pkg" / "hello.py").read_text() == "print('hi')\nx = 1"

        view = await edit(context, command="view", path="pkg/hello.py").run()
        assert "     1\tprint('hi')" in view.output
        assert "     2\tx = 1" in view.output

    @pytest.mark.asyncio
    async def test_create_refuses_to_overwrite(self, context, tmp_path):
        (tmp_path / "a.txt").write_text("keep")
        with pytest.raises(ToolExecutionError):
            await edit(context, command="create", path="a.txt", file_text="new").run()
        assert (tmp_path / "a.txt").read_text() == "keep"

    @pytest.mark.asyncio
    async def test_view_range(self, context, tmp_path):
        (tmp_path / "f.txt").write_text("one\ntwo\nthree\nfour")
        result = await edit(context, command="view", path="f.txt", view_range=[2, 3]).run()
        assert "     2\ttwo" in result.output
        assert "     3\tthree" in result.output
        assert "one" not in result.output

        result = await edit(context, command="view", path="f.txt", view_range=[3, -1]).run()
        assert "     4\tfour" in result.output

        with pytest.raises(ToolExecutionError):
            await edit(context, command="view", path="f.txt", view_range=[5, 6]).run()

    @pytest.mark.asyncio
    async def test_view_directory_skips_hidden(self, context, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("")
        (tmp_path / ".hidden").write_text("")
        result = await edit(context, command="view", path=".").run()
        assert "main.py" in result.output
        assert ".hidden" not in result.output

    @pytest.mark.asyncio
    async def test_str_replace_unique(self, context, tmp_path):
        (tmp_path / "f.py").write_text("def f():\n    return 1\n")
        result = await edit(context, command="str_replace", path="f.py", old_str="return 1", new_str="return 2").run()
        assert result.success
        assert (tmp_path / "f.py").read_text() == "def f():\n    return 2\n"
        assert "has been edited" in result.output

    @pytest.mark.asyncio
    async def test_str_replace_missing_or_ambiguous(self, context, tmp_path):
        (tmp_path / "f.py").write_text("x = 1\nx = 1\n")
        with pytest.raises(ToolExecutionError, match="did not appear verbatim"):
            await edit(context, command="str_replace", path="f.py", old_str="y = 2", new_str="").run()
        with pytest.raises(ToolExecutionError, match="Multiple occurrences"):
            await edit(context, command="str_replace", path="f.py", old_str="x = 1", new_str="x = 2").run()
        assert (tmp_path / "f.py").read_text() == "x = 1\nx = 1\n"

    @pytest.mark.asyncio
    async def test_insert(self, context, tmp_path):
        (tmp_path / "f.txt").write_text("a\nc")
        await edit(context, command="insert", path="f.txt", insert_line=1, new_str="b").run()
        assert (tmp_path / "f.txt").read_text() == "a\nb\nc"

        with pytest.raises(ToolExecutionError):
            await edit(context, command="insert", path="f.txt", insert_line=10, new_str="z").run()

    @pytest.mark.asyncio
    async def test_missing_path(self, context):
        with pytest.raises(ToolExecutionError, match="does not exist"):
            await edit(context, command="view", path="nope.txt").run()

    def test_command_arguments_are_validated(self, context):
        with pytest.raises(ToolValidationError, match="file_text"):
            edit(context, command="create", path="a.txt")
        with pytest.raises(ToolValidationError, match="old_str"):
            edit(context, command="str_replace", path="a.txt")
        with pytest.raises(ToolValidationError, match="insert_line"):
            edit(context, command="insert", path="a.txt", new_str="x")
        with pytest.raises(ToolValidationError):
            edit(context, command="delete", path="a.txt")
