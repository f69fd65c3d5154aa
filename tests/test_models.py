from __future__ import annotations

from pathlib import Path

import pytest
from pydantic_ai.models.test import TestModel  # type: ignore

from sidekick.agent.catalog import CatalogModel, lookup
from sidekick.agent.errors import ModelBuildError
from sidekick.agent.models import Model, build_provider_model, effective_max_tokens, provider_options, resolve_model
from sidekick.agent.session_agent import SessionAgentCall, build_model_settings
from sidekick.config import ProviderConfig, SelectedModel
from tests.utils import make_config


def _model(provider: str = "openai", **overrides) -> Model:
    return Model(
        llm=None,
        catalog=CatalogModel(id="m", default_max_tokens=4000),
        config=SelectedModel(model="m", provider=provider, **overrides),
    )


def test_resolve_model_uses_provider_catalog_entries(tmp_path: Path):
    model = resolve_model(make_config(tmp_path), "large")

    assert isinstance(model.llm, TestModel)
    assert model.provider_id == "test"
    assert model.catalog.default_max_tokens == 1024
    assert model.catalog.cost_per_1m_in == 1000.0


def test_resolve_model_errors(tmp_path: Path):
    config = make_config(tmp_path)
    del config.models["small"]
    with pytest.raises(ModelBuildError, match="small model not configured"):
        resolve_model(config, "small")

    config.providers["test"].disable = True
    with pytest.raises(ModelBuildError, match="provider"):
        resolve_model(config, "large")


def test_build_provider_model_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = ProviderConfig(id="openai", type="openai", api_key="$OPENAI_API_KEY")

    with pytest.raises(ModelBuildError, match="API key"):
        build_provider_model(SelectedModel(model="gpt-4.1", provider="openai"), provider)


def test_build_provider_model_rejects_unknown_type():
    with pytest.raises(ModelBuildError, match="unsupported provider type"):
        build_provider_model(SelectedModel(model="x", provider="p"), ProviderConfig(id="p", type="carrier-pigeon"))


def test_effective_max_tokens_prefers_config_override():
    assert effective_max_tokens(_model()) == 4000
    assert effective_max_tokens(_model(max_tokens=123)) == 123


def test_catalog_lookup_falls_back_to_defaults():
    assert lookup("anthropic", "claude-sonnet-4-20250514").cost_per_1m_out == 15.0
    unknown = lookup("anthropic", "claude-from-the-future")
    assert unknown.cost_per_1m_in == 0.0
    assert unknown.default_max_tokens == 4096
    override = CatalogModel(id="claude-sonnet-4-20250514", default_max_tokens=10)
    assert lookup("anthropic", "claude-sonnet-4-20250514", [override]).default_max_tokens == 10


def test_provider_options_merge_and_reasoning_mapping():
    provider = ProviderConfig(
        id="openai",
        type="openai",
        extra_headers={"X-Team": "core"},
        provider_options={"parallel_tool_calls": False, "seed": 1},
    )
    model = _model(reasoning_effort="high", provider_options={"seed": 2})

    options = provider_options(model, provider)

    assert options["seed"] == 2
    assert options["parallel_tool_calls"] is False
    assert options["extra_headers"] == {"X-Team": "core"}
    assert options["openai_reasoning_effort"] == "high"


def test_provider_options_anthropic_thinking_and_test_keys_stripped():
    anthropic = ProviderConfig(id="anthropic", type="anthropic")
    assert "anthropic_thinking" in provider_options(_model("anthropic", think=True), anthropic)

    test_provider = ProviderConfig(id="t", type="test", provider_options={"call_tools": ["agent"], "output_text": "x"})
    assert provider_options(_model("t"), test_provider) == {}


def test_call_settings_include_sampling_overrides():
    provider = ProviderConfig(id="openai", type="openai")
    model = _model(temperature=0.2, top_k=40, max_tokens=256)

    call = SessionAgentCall.for_model("s", "p", model, provider)
    settings = build_model_settings(call)

    assert settings["max_tokens"] == 256
    assert settings["temperature"] == 0.2
    assert settings["extra_body"] == {"top_k": 40}
    assert "top_p" not in settings
