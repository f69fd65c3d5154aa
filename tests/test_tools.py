from __future__ import annotations

from pathlib import Path

import pytest

from sidekick.agent.errors import ToolBuildError
from sidekick.agent.tools import BUILTIN_TOOLS, ToolSpec, build_tools
from sidekick.agent.tools.fetch_url import fetch_url
from sidekick.agent.tools.list_files import list_files
from sidekick.agent.tools.read_file import read_file
from sidekick.config import AgentConfig


@pytest.mark.asyncio
async def test_read_file_line_range(tmp_path: Path):
    (tmp_path / "sample.txt").write_text("line1\nline2\nline3\n")

    result = await read_file("sample.txt", start=2, lines=1, working_dir=tmp_path)

    assert result["error"] is None
    assert result["content"] == "line2\n"
    assert result["total_lines"] == 3


@pytest.mark.asyncio
async def test_read_file_errors(tmp_path: Path):
    missing = await read_file("nope.txt", working_dir=tmp_path)
    assert "does not exist" in missing["error"]

    directory = await read_file(".", working_dir=tmp_path)
    assert "not a file" in directory["error"]


@pytest.mark.asyncio
async def test_list_files_honors_gitignore(tmp_path: Path):
    (tmp_path / ".gitignore").write_text("build/\n*.log\n")
    (tmp_path / "build").mkdir()
    (tmp_path / "build" / "out.bin").write_text("x")
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.py").write_text("print()")
    (tmp_path / "debug.log").write_text("x")
    (tmp_path / "node_modules").mkdir()

    result = await list_files(".", working_dir=tmp_path)

    lines = result["content"].splitlines()
    assert "src [dir]" in lines
    assert "src/main.py [file]" in lines
    assert not any(line.startswith(("build", "node_modules")) or "debug.log" in line for line in lines)


@pytest.mark.asyncio
async def test_fetch_url_rejects_unsafe_targets():
    assert (await fetch_url("http://example.com"))["error"] == "Only https URLs are allowed."
    assert (await fetch_url("https://127.0.0.1/admin"))["error"] == "Blocked host for security reasons."
    assert (await fetch_url("https://localhost/"))["error"] == "Blocked host for security reasons."


def test_build_tools_allows_everything_when_unrestricted():
    tools = build_tools(AgentConfig(id="coder"))
    assert [spec.name for spec in tools] == list(BUILTIN_TOOLS)


def test_build_tools_restricts_and_keeps_order():
    tools = build_tools(AgentConfig(id="task", allowed_tools=["read_file", "list_files"]))
    assert [spec.name for spec in tools] == ["read_file", "list_files"]


def test_build_tools_unknown_name_is_error_unless_optional():
    cfg = AgentConfig(id="task", allowed_tools=["read_file", "agent"])

    with pytest.raises(ToolBuildError, match="agent"):
        build_tools(cfg)

    assert [spec.name for spec in build_tools(cfg, optional={"agent"})] == ["read_file"]


def test_build_tools_extra_tools_are_available():
    async def _extra(ctx):
        return {"content": "", "error": None}

    cfg = AgentConfig(id="coder", allowed_tools=["agent"])
    tools = build_tools(cfg, extra=[ToolSpec("agent", _extra, timeout=None)])
    assert [spec.name for spec in tools] == ["agent"]
