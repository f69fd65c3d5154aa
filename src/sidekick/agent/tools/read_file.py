"""Read a file, optionally limited to a line range."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

READ_FILE_MAX_CHARS = 40_000


def resolve_path(working_dir: Path, target: str) -> Path:
    path = Path(target).expanduser()
    return path if path.is_absolute() else working_dir / path


async def read_file(
    path: str,
    start: int | None = None,
    lines: int | None = None,
    working_dir: Path | None = None,
) -> Dict[str, Any]:
    """Return the file content (1-based `start`, `lines` count) or an error."""

    target = resolve_path(working_dir or Path.cwd(), path)
    if not target.exists():
        return {"content": None, "error": f"File '{path}' does not exist."}
    if not target.is_file():
        return {"content": None, "error": f"'{path}' is not a file."}
    if start is not None and start < 1:
        return {"content": None, "error": "start must be >= 1."}

    try:
        all_lines = target.read_text(encoding="utf-8", errors="replace").splitlines(keepends=True)
    except OSError as exc:
        return {"content": None, "error": f"Error reading file: {exc}"}

    begin = (start or 1) - 1
    end = begin + lines if lines is not None else len(all_lines)
    content = "".join(all_lines[begin:end])
    result: Dict[str, Any] = {"content": content, "error": None, "total_lines": len(all_lines)}
    if len(content) > READ_FILE_MAX_CHARS:
        result["content"] = content[:READ_FILE_MAX_CHARS] + "\n[truncated]"
        result["truncated"] = True
    return result
