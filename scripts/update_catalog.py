#!/usr/bin/env python3
"""Regenerate the bundled sidekick model catalog from models.dev.

Downloads `https://models.dev/api.json` and keeps, per supported provider, the
top tool-calling models with their output limits and per-million-token prices.
The result replaces `src/sidekick/agent/data/catalog.json`; the hand-written
`test` provider entries are preserved.
"""

from __future__ import annotations

import argparse
import json
import urllib.request
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

MODELS_DEV_URL = "https://models.dev/api.json"
USER_AGENT = "sidekick/0.1"

REPO_ROOT = Path(__file__).resolve().parents[1]
CATALOG_FILE = REPO_ROOT / "src" / "sidekick" / "agent" / "data" / "catalog.json"

EXCLUDED_MODEL_TERMS = ("embedding", "rerank", "moderation", "transcribe", "whisper", "tts", "speech")
# Catalog output limits are clamped to this as the default per-run max.
MAX_DEFAULT_OUTPUT_TOKENS = 50_000
FALLBACK_OUTPUT_TOKENS = 4096


@dataclass(frozen=True)
class ProviderMapping:
    target_provider: str
    source_provider: str
    preferred_substring: str | None = None


PROVIDER_MAPPINGS: tuple[ProviderMapping, ...] = (
    ProviderMapping("anthropic", "anthropic", preferred_substring="claude"),
    ProviderMapping("openai", "openai"),
    ProviderMapping("google", "google", preferred_substring="gemini"),
    ProviderMapping("openrouter", "openrouter"),
)


def _download_models_dev() -> dict[str, Any]:
    req = urllib.request.Request(MODELS_DEV_URL, headers={"User-Agent": USER_AGENT})
    with urllib.request.urlopen(req, timeout=30) as resp:  # type: ignore[call-arg]
        raw = json.loads(resp.read().decode("utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Unexpected models.dev payload shape (expected provider dictionary).")
    return raw


def _parse_date(model_meta: dict[str, Any]) -> int:
    for key in ("last_updated", "release_date"):
        value = model_meta.get(key)
        if not isinstance(value, str) or not value:
            continue
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp())
    return 0


def _limit(model_meta: dict[str, Any], key: str) -> int:
    limit = model_meta.get("limit")
    if not isinstance(limit, dict):
        return 0
    value = limit.get(key)
    return int(value) if isinstance(value, (int, float)) and value > 0 else 0


def _price(model_meta: dict[str, Any], key: str) -> float:
    cost = model_meta.get("cost")
    if not isinstance(cost, dict):
        return 0.0
    value = cost.get(key)
    return float(value) if isinstance(value, (int, float)) else 0.0


def _is_candidate(model_id: str, model_meta: dict[str, Any]) -> bool:
    if any(term in model_id.lower() for term in EXCLUDED_MODEL_TERMS):
        return False
    if not model_meta.get("tool_call"):
        return False
    outputs = (model_meta.get("modalities") or {}).get("output")
    return not (isinstance(outputs, list) and outputs and "text" not in outputs)


def _select_models(models: dict[str, Any], max_models: int, preferred: str | None) -> list[tuple[str, dict[str, Any]]]:
    ranked = [(mid, meta) for mid, meta in models.items() if isinstance(meta, dict) and _is_candidate(mid, meta)]
    ranked.sort(key=lambda item: (_parse_date(item[1]), _limit(item[1], "context"), item[0]), reverse=True)
    if preferred:
        ranked.sort(key=lambda item: preferred not in item[0].lower())
    return ranked[:max_models]


def _catalog_entry(model_id: str, meta: dict[str, Any]) -> dict[str, Any]:
    output = _limit(meta, "output") or FALLBACK_OUTPUT_TOKENS
    return {
        "id": model_id,
        "name": str(meta.get("name") or model_id),
        "context_window": _limit(meta, "context") or None,
        "default_max_tokens": min(output, MAX_DEFAULT_OUTPUT_TOKENS),
        "cost_per_1m_in": _price(meta, "input"),
        "cost_per_1m_out": _price(meta, "output"),
        "cost_per_1m_in_cached": _price(meta, "cache_write"),
        "cost_per_1m_out_cached": _price(meta, "cache_read"),
    }


def _build_catalog(raw: dict[str, Any], top_per_provider: int, existing: dict[str, Any]) -> dict[str, Any]:
    providers: dict[str, Any] = {}
    for mapping in PROVIDER_MAPPINGS:
        source_entry = raw.get(mapping.source_provider, {})
        source_models = source_entry.get("models", {}) if isinstance(source_entry, dict) else {}
        selected = _select_models(source_models or {}, top_per_provider, mapping.preferred_substring)
        entries = [_catalog_entry(mid, meta) for mid, meta in selected]
        for entry in entries:
            if entry["context_window"] is None:
                entry.pop("context_window")
        providers[mapping.target_provider] = entries
    providers["test"] = existing.get("providers", {}).get("test", [])
    return {
        "source": MODELS_DEV_URL,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "providers": providers,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--top-per-provider",
        type=int,
        default=6,
        help="Maximum number of models to keep per supported provider (default: 6).",
    )
    args = parser.parse_args()
    if args.top_per_provider < 1 or args.top_per_provider > 20:
        raise SystemExit("--top-per-provider must be between 1 and 20.")

    existing = json.loads(CATALOG_FILE.read_text(encoding="utf-8")) if CATALOG_FILE.exists() else {}
    catalog = _build_catalog(_download_models_dev(), args.top_per_provider, existing)
    CATALOG_FILE.write_text(json.dumps(catalog, indent=2), encoding="utf-8")
    print(f"wrote {CATALOG_FILE}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
