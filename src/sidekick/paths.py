"""Where sidekick keeps its files.

Config, state and logs follow the platform conventions (XDG on Linux). Setting
SIDEKICK_HOME puts all three under one directory instead. The session store
can be moved on its own with `options.data_dir` in the config file.
"""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs

APP_NAME = "sidekick"
HOME_ENV = "SIDEKICK_HOME"


def _platform_dirs() -> PlatformDirs:
    return PlatformDirs(appname=APP_NAME, appauthor=False)


def _home() -> Path | None:
    value = os.getenv(HOME_ENV)
    return Path(value).expanduser() if value else None


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_dir() -> Path:
    home = _home()
    return ensure_dir(home / "config" if home else Path(_platform_dirs().user_config_path))


def state_dir() -> Path:
    home = _home()
    return ensure_dir(home / "state" if home else Path(_platform_dirs().user_state_path))


def log_dir() -> Path:
    home = _home()
    return ensure_dir(home / "logs" if home else Path(_platform_dirs().user_log_path))


def sessions_dir(data_dir: str | None = None) -> Path:
    """Session store root; a configured `data_dir` replaces the state dir."""

    base = Path(data_dir).expanduser() if data_dir else state_dir()
    return ensure_dir(base / "sessions")
