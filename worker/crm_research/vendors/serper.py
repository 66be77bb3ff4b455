"""Client utilities for the Serper Google search API."""

import logging
from typing import Any, Dict, List, Optional

import requests

from crm_research.core.config import get_settings
from crm_research.core.http import build_session

logger = logging.getLogger(__name__)
_SESSION: Optional[requests.Session] = None
_BASE_URL = "https://google.serper.dev"


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = build_session()
    return _SESSION


def search(query: str, max_results: int = 10) -> List[Dict[str, Any]]:
    """Return organic results as {title, link, snippet} rows.

    Without SERPER_API_KEY, or on any non-2xx/network failure, returns [].
    """
    settings = get_settings()
    if not settings.serper_api_key or not (query or "").strip():
        return []

    body = {"q": query.strip(), "num": min(20, max(5, int(max_results)))}
    try:
        response = _get_session().post(
            f"{_BASE_URL}/search",
            json=body,
            headers={"X-API-KEY": settings.serper_api_key},
            timeout=settings.request_timeout,
        )
    except requests.RequestException as exc:
        logger.warning("Serper search failed for query=%s: %s", query, exc)
        return []

    if not 200 <= response.status_code < 300:
        logger.warning("Serper search returned status=%s for query=%s", response.status_code, query)
        return []

    try:
        payload = response.json()
    except ValueError:
        logger.warning("Serper returned a non-JSON body for query=%s", query)
        return []

    organic = payload.get("organic") if isinstance(payload, dict) else None
    if not isinstance(organic, list):
        return []

    rows: List[Dict[str, Any]] = []
    for item in organic:
        if not isinstance(item, dict):
            continue
        rows.append(
            {
                "title": str(item.get("title") or ""),
                "link": str(item.get("link") or ""),
                "snippet": str(item.get("snippet") or ""),
            }
        )
    logger.info("Serper returned %d rows for query=%s", len(rows), query)
    return rows
