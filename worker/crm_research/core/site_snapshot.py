"""Lightweight website snapshots used as research context."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from crm_research.core.config import get_settings
from crm_research.core.models import WebsiteSnapshot

logger = logging.getLogger(__name__)

RAW_HTML_SAMPLE = 5000
TEXT_SAMPLE_LENGTH = 1200
MAX_FETCH_WORKERS = 6
FIT_KEYWORDS = (
    "accessories",
    "electronics",
    "retail",
    "reseller",
    "distribution",
    "consumer tech",
    "b2b",
    "enterprise",
    "nordic",
    "scandinavia",
    "mobile",
    "smart home",
    "audio",
)

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


class SnapshotFetchError(RuntimeError):
    """Raised when a website responds with a non-successful status."""


def normalize_url(url: str) -> str:
    """Prefix bare domains with https:// and leave absolute URLs untouched."""
    trimmed = (url or "").strip()
    if not trimmed:
        return trimmed
    if trimmed.lower().startswith(("http://", "https://")):
        return trimmed
    return f"https://{trimmed}"


def compute_fit_score(text: str) -> int:
    normalized = (text or "").lower()
    hits = sum(1 for keyword in FIT_KEYWORDS if keyword in normalized)
    return max(20, min(100, 35 + hits * 6))


def _collapse(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = _WS_RE.sub(" ", value).strip()
    return cleaned or None


def extract_snapshot(url: str, html: str) -> WebsiteSnapshot:
    """Build a snapshot from already fetched HTML."""
    soup = BeautifulSoup(html or "", "html.parser")

    title = _collapse(soup.title.get_text(" ")) if soup.title else None
    description = None
    meta = soup.find("meta", attrs={"name": re.compile(r"^description$", re.IGNORECASE)})
    if meta is not None:
        description = _collapse(meta.get("content"))
    h1_tag = soup.find("h1")
    h1 = _collapse(h1_tag.get_text(" ")) if h1_tag else None

    raw = f"{title or ''} {description or ''} {h1 or ''} {(html or '')[:RAW_HTML_SAMPLE]}"
    text = _WS_RE.sub(" ", _TAG_RE.sub(" ", raw)).strip()

    return WebsiteSnapshot(
        url=url,
        title=title,
        description=description,
        h1=h1,
        text_sample=text[:TEXT_SAMPLE_LENGTH],
        vendora_fit_score=compute_fit_score(text),
    )


def fetch_website_snapshot(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> WebsiteSnapshot:
    """Fetch a website and extract title/description/h1 plus a text sample."""
    settings = get_settings()
    target = normalize_url(url)
    if not target:
        raise ValueError("A website URL is required for a snapshot")

    http = session or requests
    response = http.get(
        target,
        headers={"User-Agent": settings.user_agent, "Accept": "text/html,application/xhtml+xml"},
        timeout=timeout or settings.request_timeout,
        allow_redirects=True,
    )
    if not 200 <= response.status_code < 300:
        raise SnapshotFetchError(f"Failed to fetch {target} ({response.status_code})")

    return extract_snapshot(target, response.text)


def _safe_snapshot(url: str, session: Optional[requests.Session]) -> Optional[WebsiteSnapshot]:
    try:
        return fetch_website_snapshot(url, session=session)
    except (SnapshotFetchError, ValueError, requests.RequestException) as exc:
        logger.warning("Skipping website snapshot for %s: %s", url, exc)
        return None


def fetch_snapshots(urls: Iterable[str], *, session: Optional[requests.Session] = None) -> List[WebsiteSnapshot]:
    """Fetch snapshots concurrently; failures are dropped, input order is kept."""
    targets = [url for url in urls if url]
    if not targets:
        return []

    with ThreadPoolExecutor(max_workers=min(MAX_FETCH_WORKERS, len(targets))) as executor:
        results = list(executor.map(lambda u: _safe_snapshot(u, session), targets))
    return [snapshot for snapshot in results if snapshot is not None]
