"""DuckDuckGo text search exposed as the ``web_search`` tool."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from duckduckgo_search import DDGS

logger = logging.getLogger("llamacode.web_search")

RESULT_CAP = 10
DEFAULT_REGION = "wt-wt"


def _clamp_results(value: Any) -> int:
    return max(1, min(int(value), RESULT_CAP))


def _query_ddgs(query: str, limit: int, region: str) -> list[dict[str, Any]]:
    with DDGS() as ddgs:
        kwargs: dict[str, Any] = {"max_results": limit}
        if region != DEFAULT_REGION:
            kwargs["region"] = region
        return list(ddgs.text(query, **kwargs) or [])


def _format_result(position: int, hit: dict[str, Any]) -> str:
    entry = f"{position}. {hit.get('title') or 'No title'}\n   URL: {hit.get('href', '')}"
    body = (hit.get("body") or "").strip()
    return f"{entry}\n   {body}" if body else entry


async def web_search(query: str, max_results: int = 5, region: str = DEFAULT_REGION) -> dict[str, Any]:
    """Run a text search and return numbered ``title / URL / snippet`` entries.

    ``max_results`` is clamped to 1..10. Duplicate URLs are reported once.
    """
    if not isinstance(query, str) or not query.strip():
        return {"success": False, "error": "'query' must be a non-empty string."}

    try:
        limit = _clamp_results(max_results)
        hits = await asyncio.to_thread(_query_ddgs, query, limit, region)
    except Exception as e:
        logger.error(f"Web search error for query '{query}': {e}")
        return {"success": False, "error": str(e)}

    seen: set[str] = set()
    unique = []
    for hit in hits:
        href = hit.get("href", "")
        if href and href in seen:
            continue
        seen.add(href)
        unique.append(hit)

    if not unique:
        return {"success": True, "output": f"No results found for: {query}"}

    logger.debug(f"Web search '{query}' returned {len(unique)} results")
    return {"success": True, "output": "\n\n".join(_format_result(i, hit) for i, hit in enumerate(unique, 1))}
