"""Hard filtering of candidate companies: plausibility, blocked hosts, dedup."""

import logging
import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse

from crm_research.core.models import Candidate

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 90

# Directories, aggregators, review sites and social networks.
BLOCKED_DOMAINS = frozenset(
    {
        "trustpilot.com",
        "companydata.com",
        "crunchbase.com",
        "owler.com",
        "zoominfo.com",
        "apollo.io",
        "yelp.com",
        "glassdoor.com",
        "bullfincher.io",
        "f6s.com",
        "lusha.com",
        "ensun.io",
        "kompass.com",
        "wikipedia.org",
        "linkedin.com",
        "facebook.com",
        "instagram.com",
        "youtube.com",
        "twitter.com",
        "x.com",
        "tiktok.com",
        "reddit.com",
        "quora.com",
        "medium.com",
        "indeed.com",
        "allabolag.se",
        "hitta.se",
        "eniro.se",
        "proff.se",
        "proff.no",
        "proff.dk",
        "bloomberg.com",
        "dnb.com",
        "manta.com",
        "yellowpages.com",
        "europages.com",
        "pricerunner.se",
        "prisjakt.nu",
        "google.com",
        "amazon.com",
        "ebay.com",
    }
)

BLOCKED_NAME_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\btop\s+\d+",
        r"\bbest\b",
        r"\blargest\b",
        r"\brankings?\b",
        r"\breviews?\b",
        r"\bcareers?\b",
        r"\bjobs\b",
        r"\bprivacy\s+policy\b",
        r"\bterms\s+of\s+(use|service)\b",
        r"\bcookie\s+policy\b",
        r"^\s*\[(pdf|doc|docx|ppt)\]",
        r"\bnear\s+me\b",
        r"\bby\s+revenue\b",
        r"\blist\s+of\b",
        r"\bhow\s+to\b",
        r"\bwikipedia\b",
        r"\bcompanies\s+(like|similar|in)\b",
    )
)

CONTENT_PATH_MARKERS = (
    "review",
    "career",
    "job",
    "blog",
    "news",
    "article",
    "press",
    "pdf",
    ".doc",
    "download",
    "ranking",
    "/list",
    "wp-content",
)


def normalize_company_name(value: Optional[str]) -> str:
    """Case-fold and strip everything but ASCII letters and digits."""
    return re.sub(r"[^a-z0-9]", "", (value or "").lower())


def _parse(value: Optional[str]):
    raw = (value or "").strip()
    if not raw:
        return None
    if not re.match(r"^[a-z][a-z0-9+.-]*://", raw, re.IGNORECASE):
        raw = f"https://{raw}"
    return urlparse(raw)


def to_domain(value: Optional[str]) -> str:
    """Return the lower-cased hostname without a leading www., or ''."""
    try:
        parsed = _parse(value)
        host = parsed.hostname if parsed else None
    except ValueError:
        return ""
    if not host:
        return ""
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def is_blocked_domain(domain: str) -> bool:
    if not domain:
        return False
    return any(domain == blocked or domain.endswith(f".{blocked}") for blocked in BLOCKED_DOMAINS)


def is_content_path(value: Optional[str]) -> bool:
    """True when the URL points at an article/listing page rather than a homepage."""
    try:
        parsed = _parse(value)
    except ValueError:
        return True
    if parsed is None:
        return False
    if not parsed.hostname:
        return True

    segments = [segment for segment in (parsed.path or "").split("/") if segment]
    if len(segments) > 1:
        return True

    path = (parsed.path or "").lower()
    query = (parsed.query or "").lower()
    if path in ("", "/") and not query:
        return False
    target = f"{path}?{query}" if query else path
    return any(marker in target for marker in CONTENT_PATH_MARKERS)


def is_plausible_company_name(name: Optional[str]) -> bool:
    text = (name or "").strip()
    if len(text) < MIN_NAME_LENGTH or len(text) > MAX_NAME_LENGTH:
        return False
    if not re.search(r"[^\W\d_]", text):
        return False
    return not any(pattern.search(text) for pattern in BLOCKED_NAME_PATTERNS)


def candidate_url(candidate: Candidate) -> Optional[str]:
    return candidate.website or candidate.source_url


def rejection_reason(candidate: Candidate) -> Optional[str]:
    if not is_plausible_company_name(candidate.name):
        return "implausible name"
    url = candidate_url(candidate)
    if is_blocked_domain(to_domain(url)):
        return "blocked domain"
    if url and is_content_path(url):
        return "content page"
    return None


def hard_filter_candidates(candidates: Iterable[Candidate]) -> List[Candidate]:
    """Drop non-company results and duplicates, keeping the first occurrence.

    Filtering an already filtered list returns it unchanged.
    """
    seen_names = set()
    seen_domains = set()
    kept: List[Candidate] = []

    for candidate in candidates:
        reason = rejection_reason(candidate)
        if reason:
            logger.debug("Filtered %r: %s", candidate.name, reason)
            continue

        name_key = normalize_company_name(candidate.name)
        domain = to_domain(candidate_url(candidate))
        if not name_key or name_key in seen_names:
            continue
        if domain and domain in seen_domains:
            continue

        seen_names.add(name_key)
        if domain:
            seen_domains.add(domain)
        kept.append(candidate)

    return kept
