"""Offline model catalog with output-token defaults and pricing.

The bundled `data/catalog.json` is generated by `scripts/update_catalog.py`
from a models.dev snapshot. Provider configs can add entries for models the
bundled catalog does not know about.
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, Iterable

from pydantic import BaseModel, ConfigDict

DEFAULT_MAX_TOKENS = 4096
DEFAULT_CONTEXT_WINDOW = 128_000


class CatalogModel(BaseModel):
    """Static facts about a model: limits and cost per million tokens."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    context_window: int = DEFAULT_CONTEXT_WINDOW
    default_max_tokens: int = DEFAULT_MAX_TOKENS
    cost_per_1m_in: float = 0.0
    cost_per_1m_out: float = 0.0
    # Cache write ("in") and cache read ("out") rates.
    cost_per_1m_in_cached: float = 0.0
    cost_per_1m_out_cached: float = 0.0


@lru_cache(maxsize=1)
def _bundled() -> Dict[str, Dict[str, CatalogModel]]:
    raw: Dict[str, Any] = json.loads(
        resources.files("sidekick.agent").joinpath("data/catalog.json").read_text(encoding="utf-8")
    )
    catalog: Dict[str, Dict[str, CatalogModel]] = {}
    for provider_type, entries in raw.get("providers", {}).items():
        catalog[provider_type] = {entry["id"]: CatalogModel.model_validate(entry) for entry in entries}
    return catalog


def lookup(provider_type: str, model_id: str, extra: Iterable[CatalogModel] = ()) -> CatalogModel:
    """Find catalog facts for a model.

    Entries supplied by the provider config win over the bundled catalog.
    Unknown models get conservative defaults and zero cost.
    """

    for entry in extra:
        if entry.id == model_id:
            return entry
    found = _bundled().get(provider_type, {}).get(model_id)
    if found is not None:
        return found
    return CatalogModel(id=model_id, name=model_id)
