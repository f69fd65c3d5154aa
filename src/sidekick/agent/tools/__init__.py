"""Built-in tools and the tool set builder."""

from __future__ import annotations

from sidekick.agent.tools.registry import (
    BUILTIN_TOOLS,
    DEFAULT_TOOL_TIMEOUT_S,
    ToolSet,
    ToolSpec,
    build_tools,
    register_toolset,
)

__all__ = [
    "BUILTIN_TOOLS",
    "DEFAULT_TOOL_TIMEOUT_S",
    "ToolSet",
    "ToolSpec",
    "build_tools",
    "register_toolset",
]
