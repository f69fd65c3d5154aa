"""Model resolver: turn configured model choices into pydantic-ai models.

A resolved `Model` carries three views of the same choice: the pydantic-ai
model object that talks to the provider, the catalog facts (limits, pricing),
and the user's per-model overrides from the config file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from pydantic_ai.models.anthropic import AnthropicModel  # type: ignore
from pydantic_ai.models.google import GoogleModel  # type: ignore
from pydantic_ai.models.openai import OpenAIChatModel  # type: ignore
from pydantic_ai.models.openrouter import OpenRouterModel  # type: ignore
from pydantic_ai.models.test import TestModel  # type: ignore
from pydantic_ai.providers.anthropic import AnthropicProvider  # type: ignore
from pydantic_ai.providers.google import GoogleProvider  # type: ignore
from pydantic_ai.providers.ollama import OllamaProvider  # type: ignore
from pydantic_ai.providers.openai import OpenAIProvider  # type: ignore
from pydantic_ai.providers.openrouter import OpenRouterProvider  # type: ignore

from sidekick.agent.catalog import CatalogModel, lookup
from sidekick.agent.errors import ModelBuildError
from sidekick.config import AppConfig, ModelType, ProviderConfig, SelectedModel

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "http://localhost:11434/v1"
ANTHROPIC_THINKING_BUDGET = 2048

# Options consumed when building the test model; never forwarded as settings.
_TEST_PROVIDER_OPTIONS = {"call_tools", "output_text"}


@dataclass(frozen=True)
class Model:
    llm: Any
    catalog: CatalogModel
    config: SelectedModel

    @property
    def provider_id(self) -> str:
        return self.config.provider

    @property
    def model_id(self) -> str:
        return self.config.model


def _require_key(provider_cfg: ProviderConfig) -> str:
    key = provider_cfg.resolved_api_key()
    if not key:
        raise ModelBuildError(f"API key is required for provider {provider_cfg.id or provider_cfg.type!r}")
    return key


def build_provider_model(model_cfg: SelectedModel, provider_cfg: ProviderConfig) -> Any:
    """Build the pydantic-ai model object for a model on a provider."""

    kind = provider_cfg.type.lower()
    url = provider_cfg.base_url

    if kind == "openai":
        provider_obj = OpenAIProvider(base_url=url, api_key=_require_key(provider_cfg))
        return OpenAIChatModel(model_cfg.model, provider=provider_obj)

    if kind == "anthropic":
        key = _require_key(provider_cfg)
        provider_obj = AnthropicProvider(api_key=key, base_url=url) if url else AnthropicProvider(api_key=key)
        return AnthropicModel(model_cfg.model, provider=provider_obj)

    if kind == "google":
        key = _require_key(provider_cfg)
        provider_obj = GoogleProvider(api_key=key, base_url=url) if url else GoogleProvider(api_key=key)
        return GoogleModel(model_cfg.model, provider=provider_obj)

    if kind == "openrouter":
        provider_obj = OpenRouterProvider(api_key=_require_key(provider_cfg))
        return OpenRouterModel(model_cfg.model, provider=provider_obj)

    if kind == "ollama":
        provider_obj = OllamaProvider(base_url=url or OLLAMA_BASE_URL)
        return OpenAIChatModel(model_cfg.model, provider=provider_obj)

    if kind == "test":
        options = provider_cfg.provider_options
        return TestModel(
            call_tools=list(options.get("call_tools", [])),
            custom_output_text=options.get("output_text"),
        )

    raise ModelBuildError(f"unsupported provider type: {provider_cfg.type}")


def resolve_model(config: AppConfig, model_type: ModelType) -> Model:
    """Resolve a configured model type ("large" or "small") to a Model."""

    selected = config.models.get(model_type)
    if selected is None:
        raise ModelBuildError(f"{model_type} model not configured")
    provider_cfg = config.provider(selected.provider)
    if provider_cfg is None:
        raise ModelBuildError(f"{model_type} model provider {selected.provider!r} not configured")

    llm = build_provider_model(selected, provider_cfg)
    catalog = lookup(provider_cfg.type, selected.model, provider_cfg.models)
    logger.info("Resolved %s model %s via %s", model_type, selected.model, provider_cfg.id)
    return Model(llm=llm, catalog=catalog, config=selected)


def effective_max_tokens(model: Model) -> int:
    """Config override when non-zero, otherwise the catalog default."""

    if model.config.max_tokens != 0:
        return model.config.max_tokens
    return model.catalog.default_max_tokens


def provider_options(model: Model, provider_cfg: ProviderConfig) -> Dict[str, Any]:
    """Provider-specific model settings for a run.

    Provider-level options are applied first and model-level options override
    them. Reasoning switches map onto the setting each provider understands.
    """

    options: Dict[str, Any] = {**provider_cfg.provider_options, **model.config.provider_options}
    kind = provider_cfg.type.lower()
    if kind == "test":
        for key in _TEST_PROVIDER_OPTIONS:
            options.pop(key, None)

    headers = {**provider_cfg.extra_headers, **options.get("extra_headers", {})}
    if headers:
        options["extra_headers"] = headers
    body = {**provider_cfg.extra_body, **options.get("extra_body", {})}
    if body:
        options["extra_body"] = body

    if model.config.reasoning_effort and kind in {"openai", "openrouter"}:
        options.setdefault("openai_reasoning_effort", model.config.reasoning_effort)
    if model.config.think and kind == "anthropic":
        options.setdefault(
            "anthropic_thinking",
            {"type": "enabled", "budget_tokens": ANTHROPIC_THINKING_BUDGET},
        )
    if model.config.think and kind == "google":
        options.setdefault("google_thinking_config", {"include_thoughts": True})
    return options
