from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

from sidekick.config import DEFAULT_AGENTS, AppConfig

SUB_AGENT_ANSWER = "sub-agent answer"


def make_config(
    working_dir: Path,
    *,
    call_tools: list[str] | None = None,
    generate_titles: bool = False,
    large_max_tokens: int = 0,
) -> AppConfig:
    """Two deterministic providers: `test` backs the large model, `cheap` the small one."""

    provider_options: dict[str, Any] = {"call_tools": call_tools or [], "output_text": SUB_AGENT_ANSWER}
    raw: dict[str, Any] = {
        "working_dir": str(working_dir),
        "providers": {
            "test": {
                "type": "test",
                "provider_options": provider_options,
                "models": [
                    {
                        "id": "test-large",
                        "default_max_tokens": 1024,
                        "cost_per_1m_in": 1000.0,
                        "cost_per_1m_out": 2000.0,
                    }
                ],
            },
            "cheap": {
                "type": "test",
                "provider_options": dict(provider_options),
                "models": [
                    {
                        "id": "test-small",
                        "default_max_tokens": 512,
                        "cost_per_1m_in": 100.0,
                        "cost_per_1m_out": 200.0,
                    }
                ],
            },
        },
        "models": {
            "large": {"model": "test-large", "provider": "test", "max_tokens": large_max_tokens},
            "small": {"model": "test-small", "provider": "cheap"},
        },
        "agents": copy.deepcopy(DEFAULT_AGENTS),
        "options": {"context_paths": [], "generate_titles": generate_titles},
    }
    return AppConfig.model_validate(raw)
