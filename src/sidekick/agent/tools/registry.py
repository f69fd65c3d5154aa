"""Tool set builder: the tools an agent role may call, and their registration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable

from pydantic_ai import RunContext  # type: ignore

from sidekick.agent.ai_types import AgentDeps
from sidekick.agent.errors import ToolBuildError
from sidekick.agent.tools.fetch_url import DEFAULT_FETCH_MAX_BYTES, DEFAULT_FETCH_TIMEOUT, fetch_url
from sidekick.agent.tools.list_files import list_files
from sidekick.agent.tools.read_file import read_file
from sidekick.config import AgentConfig

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT_S = 10.0


@dataclass(frozen=True)
class ToolSpec:
    """A tool as registered on a pydantic-ai agent.

    `func` takes a `RunContext[AgentDeps]` first; its docstring is the tool
    description shown to the model. `timeout=None` means no tool-level limit.
    """

    name: str
    func: Callable[..., Awaitable[Any]]
    timeout: float | None = DEFAULT_TOOL_TIMEOUT_S


ToolSet = tuple[ToolSpec, ...]


def _log_call(tool_name: str, args: Dict[str, Any]) -> None:
    logger.info("Tool invoked: %s args=%s", tool_name, args)


async def list_files_tool(ctx: RunContext[AgentDeps], directory: str = ".", recursive: bool = True) -> Any:
    """List files and directories (relative to the working directory unless absolute)."""
    _log_call("list_files", {"directory": directory, "recursive": recursive})
    return await list_files(directory=directory, recursive=recursive, working_dir=ctx.deps.working_dir)


async def read_file_tool(
    ctx: RunContext[AgentDeps],
    path: str,
    start: int | None = None,
    lines: int | None = None,
) -> Any:
    """Read a file; `start` is a 1-based line number and `lines` a line count."""
    _log_call("read_file", {"path": path, "start": start, "lines": lines})
    return await read_file(path=path, start=start, lines=lines, working_dir=ctx.deps.working_dir)


async def fetch_url_tool(
    ctx: RunContext[AgentDeps],
    url: str,
    max_bytes: int = DEFAULT_FETCH_MAX_BYTES,
) -> Any:
    """Fetch an https URL with size and time limits; useful for docs and API refs."""
    _log_call("fetch_url", {"url": url, "max_bytes": max_bytes})
    return await fetch_url(url=url, max_bytes=max_bytes)


BUILTIN_TOOLS: Dict[str, ToolSpec] = {
    "list_files": ToolSpec("list_files", list_files_tool),
    "read_file": ToolSpec("read_file", read_file_tool),
    "fetch_url": ToolSpec("fetch_url", fetch_url_tool, timeout=DEFAULT_FETCH_TIMEOUT),
}


def build_tools(
    agent_cfg: AgentConfig,
    *,
    extra: Iterable[ToolSpec] = (),
    optional: Iterable[str] = (),
) -> ToolSet:
    """Assemble the tools an agent role is allowed to use.

    `allowed_tools=None` grants every available tool. Names listed in
    `optional` may be allowed by the config without being available (they
    are skipped); any other unknown name is a configuration error.
    """

    available: Dict[str, ToolSpec] = {**BUILTIN_TOOLS}
    for spec in extra:
        available[spec.name] = spec
    if agent_cfg.allowed_tools is None:
        return tuple(available.values())

    skippable = set(optional)
    unknown = [name for name in agent_cfg.allowed_tools if name not in available and name not in skippable]
    if unknown:
        raise ToolBuildError(f"unknown tool(s) for agent {agent_cfg.id!r}: {', '.join(sorted(unknown))}")
    return tuple(available[name] for name in agent_cfg.allowed_tools if name in available)


def register_toolset(agent: Any, toolset: ToolSet) -> None:
    """Register each tool on a pydantic-ai agent."""

    for spec in toolset:
        kwargs: Dict[str, Any] = {"name": spec.name}
        if spec.timeout is not None:
            kwargs["timeout"] = spec.timeout
        agent.tool(**kwargs)(spec.func)  # type: ignore[misc]
