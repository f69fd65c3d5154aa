"""Shared pydantic-ai typing aliases and run dependencies."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from pydantic_ai import Agent as PydanticAgent  # type: ignore


@dataclass(frozen=True)
class AgentDeps:
    """Dependencies handed to every tool call of an agent run."""

    working_dir: Path
    session_id: str


AgentRunner: TypeAlias = PydanticAgent[AgentDeps, str]

__all__ = ["AgentDeps", "AgentRunner"]
