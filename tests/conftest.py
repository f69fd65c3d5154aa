from __future__ import annotations

from pathlib import Path

import pytest

from sidekick.agent.coordinator import Coordinator
from sidekick.agent.session_store import SessionStore
from sidekick.config import AppConfig
from tests.utils import make_config


@pytest.fixture(autouse=True)
def _isolate_home(tmp_path_factory, monkeypatch):
    """Force tests to use a temporary HOME/XDG dirs to avoid permission issues."""
    base = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(base))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(base / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(base / ".local" / "state"))
    monkeypatch.setenv("XDG_DATA_HOME", str(base / ".local" / "share"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(base / ".cache"))
    monkeypatch.setattr(Path, "home", lambda: base)
    for name in ("SIDEKICK_HOME", "SIDEKICK_LOG_DIR", "SIDEKICK_LOG_LEVEL", "SIDEKICK_LOG_LEVELS", "SIDEKICK_LOG_JSON", "SIDEKICK_LOG_STDERR"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "sessions")


@pytest.fixture
def workdir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    (path / "README.md").write_text("hello\n", encoding="utf-8")
    return path


@pytest.fixture
def config(workdir: Path) -> AppConfig:
    return make_config(workdir)


@pytest.fixture
def coordinator(config: AppConfig, store: SessionStore) -> Coordinator:
    return Coordinator(config, store)
