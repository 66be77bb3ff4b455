"""Client utilities for the Tavily search API."""

import logging
from typing import Any, Dict, List, Optional

import requests

from crm_research.core.config import get_settings
from crm_research.core.http import build_session

logger = logging.getLogger(__name__)
_SESSION: Optional[requests.Session] = None
_BASE_URL = "https://api.tavily.com"


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = build_session()
    return _SESSION


def search(query: str, max_results: int = 10) -> List[Dict[str, Any]]:
    """Return Tavily results mapped onto {title, link, snippet} rows."""
    settings = get_settings()
    if not settings.tavily_api_key or not (query or "").strip():
        return []

    body = {
        "api_key": settings.tavily_api_key,
        "query": query.strip(),
        "max_results": min(20, max(5, int(max_results))),
        "search_depth": "basic",
    }
    try:
        response = _get_session().post(f"{_BASE_URL}/search", json=body, timeout=settings.request_timeout)
    except requests.RequestException as exc:
        logger.warning("Tavily search failed for query=%s: %s", query, exc)
        return []

    if not 200 <= response.status_code < 300:
        logger.warning("Tavily search returned status=%s for query=%s", response.status_code, query)
        return []

    try:
        payload = response.json()
    except ValueError:
        logger.warning("Tavily returned a non-JSON body for query=%s", query)
        return []

    results = payload.get("results") if isinstance(payload, dict) else None
    if not isinstance(results, list):
        return []

    return [
        {
            "title": str(item.get("title") or ""),
            "link": str(item.get("url") or ""),
            "snippet": str(item.get("content") or ""),
        }
        for item in results
        if isinstance(item, dict)
    ]
