"""List files under a directory, honoring .gitignore."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict

import pathspec  # type: ignore

from sidekick.agent.tools.read_file import resolve_path

MAX_ENTRIES = 500
MAX_CHARS = 20_000

_ALWAYS_SKIPPED = {
    ".git",
    ".hg",
    ".svn",
    ".cache",
    ".pytest_cache",
    ".ruff_cache",
    ".mypy_cache",
    ".tox",
    ".nox",
    ".venv",
    "venv",
    "__pycache__",
    "node_modules",
}


def _gitignore_matcher(root: Path) -> Callable[[Path, bool], bool]:
    gitignore = root / ".gitignore"
    patterns: list[str] = []
    if gitignore.is_file():
        try:
            patterns = [
                line.strip()
                for line in gitignore.read_text(encoding="utf-8").splitlines()
                if line.strip() and not line.strip().startswith("#")
            ]
        except OSError:
            patterns = []
    spec = pathspec.PathSpec.from_lines("gitwildmatch", patterns) if patterns else None

    def _ignored(rel: Path, is_dir: bool) -> bool:
        if any(part in _ALWAYS_SKIPPED for part in rel.parts):
            return True
        if spec is None:
            return False
        return spec.match_file(str(rel) + ("/" if is_dir else ""))

    return _ignored


async def list_files(
    directory: str = ".",
    recursive: bool = True,
    working_dir: Path | None = None,
) -> Dict[str, Any]:
    """List entries as `path [dir]` / `path [file]` lines, sorted."""

    root = resolve_path(working_dir or Path.cwd(), directory)
    if not root.exists():
        return {"content": None, "error": f"Directory '{directory}' does not exist."}
    if not root.is_dir():
        return {"content": None, "error": f"'{directory}' is not a directory."}

    ignored = _gitignore_matcher(root)
    entries: list[str] = []
    if recursive:
        for current, dirs, files in os.walk(root):
            rel_root = Path(current).relative_to(root)
            dirs[:] = [d for d in dirs if not ignored(rel_root / d, True)]
            entries.extend(f"{rel_root / d} [dir]" for d in dirs)
            entries.extend(f"{rel_root / f} [file]" for f in files if not ignored(rel_root / f, False))
    else:
        for item in root.iterdir():
            rel = Path(item.name)
            if not ignored(rel, item.is_dir()):
                entries.append(f"{rel} [{'dir' if item.is_dir() else 'file'}]")

    entries.sort()
    truncated = len(entries) > MAX_ENTRIES
    text = "\n".join(entries[:MAX_ENTRIES])
    if len(text) > MAX_CHARS:
        text = text[:MAX_CHARS]
        truncated = True
    result: Dict[str, Any] = {"content": f"{text}\n[truncated]" if truncated else text, "error": None}
    if truncated:
        result["truncated"] = True
    return result
