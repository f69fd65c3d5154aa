"""Configuration models and loader.

Settings live in `sidekick.json` under the user config dir; API keys are read
from the environment (and `.env` files) via `$VAR` references so the JSON file
never needs to hold secrets.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from sidekick.agent.catalog import CatalogModel
from sidekick.agent.errors import ConfigError
from sidekick.paths import config_dir

logger = logging.getLogger(__name__)

AGENT_CODER = "coder"
AGENT_TASK = "task"

ModelType = Literal["large", "small"]

CONFIG_FILE_NAME = "sidekick.json"
READ_ONLY_TOOLS = ["list_files", "read_file", "fetch_url"]


class ProviderConfig(BaseModel):
    """Connection settings for one model provider."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    type: str = "openai"
    api_key: str | None = None
    base_url: str | None = None
    system_prompt_prefix: str = ""
    extra_headers: Dict[str, str] = Field(default_factory=dict)
    extra_body: Dict[str, Any] = Field(default_factory=dict)
    provider_options: Dict[str, Any] = Field(default_factory=dict)
    disable: bool = False
    models: list[CatalogModel] = Field(default_factory=list)

    def resolved_api_key(self) -> str | None:
        """Return the API key, expanding a `$ENV_VAR` reference."""

        if not self.api_key:
            return None
        if self.api_key.startswith("$"):
            return os.getenv(self.api_key[1:]) or None
        return self.api_key


class SelectedModel(BaseModel):
    """A model choice plus its per-model generation overrides."""

    model_config = ConfigDict(extra="ignore")

    model: str
    provider: str
    max_tokens: int = 0
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    reasoning_effort: str | None = None
    think: bool = False
    provider_options: Dict[str, Any] = Field(default_factory=dict)


class AgentConfig(BaseModel):
    """Role configuration for an agent (primary coder or delegated task)."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    name: str = ""
    description: str = ""
    model: ModelType = "large"
    allowed_tools: list[str] | None = None
    context_paths: list[str] = Field(default_factory=list)


class SmallTierRoles(BaseModel):
    """Which configured model types back a small-tier sub-agent.

    `primary` runs the task; `auxiliary` handles side work such as titles.
    """

    model_config = ConfigDict(extra="ignore")

    primary: ModelType = "small"
    auxiliary: ModelType = "small"


class Options(BaseModel):
    model_config = ConfigDict(extra="ignore")

    context_paths: list[str] = Field(default_factory=lambda: ["AGENTS.md", "SIDEKICK.md"])
    generate_titles: bool = True
    data_dir: str | None = None
    small_tier_roles: SmallTierRoles = Field(default_factory=SmallTierRoles)


class AppConfig(BaseModel):
    """The running configuration shared by the coordinator and its agents."""

    model_config = ConfigDict(extra="ignore")

    working_dir: str = "."
    providers: Dict[str, ProviderConfig] = Field(default_factory=dict)
    models: Dict[ModelType, SelectedModel] = Field(default_factory=dict)
    agents: Dict[str, AgentConfig] = Field(default_factory=dict)
    options: Options = Field(default_factory=Options)

    def model_post_init(self, __context: Any) -> None:
        for key, provider in self.providers.items():
            if not provider.id:
                provider.id = key
        for key, agent in self.agents.items():
            if not agent.id:
                agent.id = key
            if not agent.name:
                agent.name = key.title()

    def provider(self, provider_id: str) -> ProviderConfig | None:
        """Return the provider config, or None if it is missing or disabled."""

        provider = self.providers.get(provider_id)
        if provider is None or provider.disable:
            return None
        return provider

    def working_path(self) -> Path:
        return Path(self.working_dir).expanduser().resolve()


DEFAULT_AGENTS: Dict[str, Dict[str, Any]] = {
    AGENT_CODER: {
        "name": "Coder",
        "description": "Primary coding agent",
        "model": "large",
    },
    AGENT_TASK: {
        "name": "Task",
        "description": "Sub-agent for searching and reading code on behalf of the coder",
        "model": "large",
        "allowed_tools": READ_ONLY_TOOLS,
    },
}

DEFAULT_CONFIG: Dict[str, Any] = {
    "working_dir": ".",
    "providers": {
        "anthropic": {"type": "anthropic", "api_key": "$ANTHROPIC_API_KEY"},
        "openai": {"type": "openai", "api_key": "$OPENAI_API_KEY"},
    },
    "models": {
        "large": {"model": "claude-sonnet-4-20250514", "provider": "anthropic"},
        "small": {"model": "claude-3-5-haiku-20241022", "provider": "anthropic"},
    },
    "agents": DEFAULT_AGENTS,
}


def config_file() -> Path:
    return config_dir() / CONFIG_FILE_NAME


def env_file() -> Path:
    return config_dir() / ".env"


def load_config(path: Path | None = None) -> AppConfig:
    """Load the configuration, writing defaults on first use.

    Missing default agent roles are backfilled so older config files keep
    working after new roles are introduced.
    """

    load_dotenv(env_file(), override=False)
    load_dotenv()

    target = path or config_file()
    if not target.exists():
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(json.dumps(DEFAULT_CONFIG, indent=2), encoding="utf-8")
        logger.info("Wrote default configuration to %s", target)
        raw: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))
    else:
        try:
            raw = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid configuration file {target}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"invalid configuration file {target}: expected an object")

    agents = raw.setdefault("agents", {})
    for agent_id, defaults in DEFAULT_AGENTS.items():
        agents.setdefault(agent_id, dict(defaults))

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration file {target}: {exc}") from exc
