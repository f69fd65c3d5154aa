from __future__ import annotations

import os
from pathlib import Path

from sidekick import paths


def test_platform_dirs_use_xdg_homes() -> None:
    expected_config = Path(os.environ["XDG_CONFIG_HOME"]) / "sidekick"
    expected_state = Path(os.environ["XDG_STATE_HOME"]) / "sidekick"

    assert paths.config_dir() == expected_config
    assert paths.state_dir() == expected_state
    assert paths.sessions_dir() == expected_state / "sessions"
    assert paths.sessions_dir().is_dir()
    assert paths.log_dir().is_relative_to(expected_state)


def test_sidekick_home_groups_all_dirs(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("SIDEKICK_HOME", str(tmp_path / "sk"))

    assert paths.config_dir() == tmp_path / "sk" / "config"
    assert paths.state_dir() == tmp_path / "sk" / "state"
    assert paths.log_dir() == tmp_path / "sk" / "logs"
    assert paths.sessions_dir() == tmp_path / "sk" / "state" / "sessions"


def test_data_dir_relocates_only_sessions(tmp_path: Path) -> None:
    root = paths.sessions_dir(str(tmp_path / "data"))

    assert root == tmp_path / "data" / "sessions"
    assert root.is_dir()
    assert not paths.state_dir().is_relative_to(tmp_path / "data")
