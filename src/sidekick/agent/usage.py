"""Token usage and cost helpers."""

from __future__ import annotations

from typing import Any

from sidekick.agent.catalog import CatalogModel

_PER_MILLION = 1_000_000


def normalize_usage(usage: Any) -> Any:
    """Resolve usage to a value if it is exposed as a callable (``result.usage``)."""

    if usage is None:
        return None
    if callable(usage):
        try:
            return usage()
        except Exception:
            return None
    return usage


def _field(usage: Any, *names: str) -> int:
    for name in names:
        if isinstance(usage, dict):
            value = usage.get(name)
        else:
            value = getattr(usage, name, None)
        if isinstance(value, (int, float)):
            return int(value)
    return 0


def usage_tokens(usage: Any) -> tuple[int, int]:
    """Return (input_tokens, output_tokens), accepting legacy field names."""

    usage = normalize_usage(usage)
    if usage is None:
        return 0, 0
    return (
        _field(usage, "input_tokens", "request_tokens", "prompt_tokens"),
        _field(usage, "output_tokens", "response_tokens", "completion_tokens"),
    )


def usage_cost(usage: Any, catalog: CatalogModel) -> float:
    """Price a run's usage with the catalog rates.

    Cache reads and writes are billed at their own rates and are not counted
    again as plain input tokens.
    """

    usage = normalize_usage(usage)
    if usage is None:
        return 0.0
    input_tokens, output_tokens = usage_tokens(usage)
    cache_read = _field(usage, "cache_read_tokens")
    cache_write = _field(usage, "cache_write_tokens")
    plain_input = max(0, input_tokens - cache_read - cache_write)
    cost = (
        plain_input * catalog.cost_per_1m_in
        + output_tokens * catalog.cost_per_1m_out
        + cache_write * catalog.cost_per_1m_in_cached
        + cache_read * catalog.cost_per_1m_out_cached
    ) / _PER_MILLION
    return max(0.0, cost)


def format_usage_summary(input_tokens: int, output_tokens: int, cost: float) -> str:
    """Human-friendly usage line for the CLI."""

    return f"Usage: input={input_tokens}, output={output_tokens}, total={input_tokens + output_tokens}, cost=${cost:.4f}"
