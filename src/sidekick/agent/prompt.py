"""System prompt templates and their rendering."""

from __future__ import annotations

import asyncio
import platform
from dataclasses import dataclass, field
from datetime import date
from importlib import resources
from pathlib import Path
from string import Template

from sidekick.agent.errors import PromptBuildError
from sidekick.config import AppConfig

CONTEXT_FILE_MAX_CHARS = 20_000


def _template_text(name: str) -> str:
    return resources.files("sidekick.agent").joinpath(f"templates/{name}").read_text(encoding="utf-8")


@dataclass(frozen=True)
class PromptTemplate:
    """A named system prompt template.

    Templates use `string.Template` placeholders: `$working_dir`,
    `$is_git_repo`, `$platform`, `$date`, `$provider`, `$model` and
    `$context_files`.
    """

    name: str
    template: str
    working_dir: Path
    context_paths: tuple[str, ...] = field(default_factory=tuple)

    async def build(self, provider: str, model: str, config: AppConfig | None = None) -> str:
        """Render the prompt for a model on a provider."""

        paths = list(self.context_paths)
        if config is not None:
            paths.extend(p for p in config.options.context_paths if p not in paths)
        context_files = await asyncio.to_thread(_read_context_files, self.working_dir, paths)
        values = {
            "working_dir": str(self.working_dir),
            "is_git_repo": "yes" if (self.working_dir / ".git").exists() else "no",
            "platform": platform.system().lower(),
            "date": date.today().isoformat(),
            "provider": provider,
            "model": model,
            "context_files": context_files,
        }
        try:
            rendered = Template(self.template).substitute(values)
        except (KeyError, ValueError) as exc:
            raise PromptBuildError(f"template {self.name!r} failed to render: {exc!r}") from exc
        return rendered.strip() + "\n"


def _read_context_files(working_dir: Path, paths: list[str]) -> str:
    sections: list[str] = []
    for rel in paths:
        path = Path(rel) if Path(rel).is_absolute() else working_dir / rel
        if not path.is_file():
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        if len(text) > CONTEXT_FILE_MAX_CHARS:
            text = text[:CONTEXT_FILE_MAX_CHARS] + "\n[truncated]"
        sections.append(f'<file path="{rel}">\n{text.strip()}\n</file>')
    if not sections:
        return ""
    return "\n<project_context>\n" + "\n".join(sections) + "\n</project_context>"


def task_prompt(*, working_dir: Path, context_paths: tuple[str, ...] = ()) -> PromptTemplate:
    return PromptTemplate("task", _template_text("task.md"), working_dir, context_paths)


def coder_prompt(*, working_dir: Path, context_paths: tuple[str, ...] = ()) -> PromptTemplate:
    return PromptTemplate("coder", _template_text("coder.md"), working_dir, context_paths)


def title_prompt() -> str:
    return _template_text("title.md").strip()


def agent_tool_description() -> str:
    return _template_text("agent_tool.md").strip()
