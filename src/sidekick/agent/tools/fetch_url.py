"""HTTPS fetch tool for pulling docs and API references."""

from __future__ import annotations

import ipaddress
from typing import Any, Dict
from urllib.parse import urlparse

import httpx
from aiocache import SimpleMemoryCache

DEFAULT_FETCH_MAX_BYTES = 20_000
DEFAULT_FETCH_TIMEOUT = 30.0
USER_AGENT = "sidekick-fetch/0.1"

_CACHE = SimpleMemoryCache()


def _blocked_host(host: str | None) -> bool:
    """Reject local and private hosts."""

    if not host:
        return True
    lowered = host.lower()
    if lowered == "localhost" or lowered.endswith(".local"):
        return True
    try:
        ip_obj = ipaddress.ip_address(lowered)
    except ValueError:
        return False
    return ip_obj.is_private or ip_obj.is_loopback or ip_obj.is_link_local


async def fetch_url(
    url: str,
    max_bytes: int = DEFAULT_FETCH_MAX_BYTES,
    timeout: float | None = DEFAULT_FETCH_TIMEOUT,
) -> Dict[str, Any]:
    """Fetch an https URL, truncated to `max_bytes`; successful results are cached."""

    parsed = urlparse(url)
    if parsed.scheme != "https":
        return {"content": None, "error": "Only https URLs are allowed."}
    if _blocked_host(parsed.hostname):
        return {"content": None, "error": "Blocked host for security reasons."}
    if max_bytes <= 0:
        return {"content": None, "error": "max_bytes must be positive."}

    cache_key = f"{url}|{max_bytes}"
    cached = await _CACHE.get(cache_key)
    if cached is not None:
        return {**cached, "cached": True}

    headers = {"User-Agent": USER_AGENT, "Accept": "text/*, application/json;q=0.9, */*;q=0.1"}
    try:
        async with httpx.AsyncClient(follow_redirects=True, timeout=timeout) as client:
            async with client.stream("GET", url, headers=headers) as response:
                collected = bytearray()
                truncated = False
                async for chunk in response.aiter_bytes():
                    room = max_bytes - len(collected)
                    if len(chunk) > room:
                        collected.extend(chunk[:room])
                        truncated = True
                        break
                    collected.extend(chunk)
                status = response.status_code
                result: Dict[str, Any] = {
                    "content": collected.decode(response.encoding or "utf-8", errors="replace"),
                    "error": f"HTTP {status} for {response.url}" if status >= 400 else None,
                    "status_code": status,
                    "url": str(response.url),
                    "content_type": response.headers.get("content-type", ""),
                    "truncated": truncated,
                }
    except httpx.HTTPError as exc:
        return {"content": None, "error": f"Fetch failed: {exc}"}

    if result["error"] is None:
        await _CACHE.set(cache_key, result)
    return result
