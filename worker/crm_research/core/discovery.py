"""External seed discovery across the Serper and Tavily search APIs."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from crm_research.core.models import DiscoverySeed
from crm_research.etl.filters import normalize_company_name, to_domain
from crm_research.vendors import serper, tavily

logger = logging.getLogger(__name__)

MIN_RESULTS = 6
MAX_RESULTS = 20
SNIPPET_LENGTH = 400
_TITLE_SEPARATORS = (" | ", " - ", " – ")
MAX_TITLE_LENGTH = 90

GENERIC_TITLE_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\btop\s+\d+",
        r"\bbest\b",
        r"\blargest\b",
        r"\branking\b",
        r"\bcompanies\b",
        r"\bsuppliers\b",
        r"\blist\b",
        r"\bmarket\b",
        r"\bby\s+revenue\b",
        r"\bnear\s+me\b",
    )
)

COMPANY_SUFFIXES = (
    "ab", "as", "a/s", "asa", "oy", "oyj", "aps", "ehf", "hf", "sa", "srl", "spa",
    "bv", "nv", "ag", "kg", "sp z o o", "uab", "gmbh", "ltd", "inc", "llc", "plc",
)


@dataclass
class DiscoveryProfile:
    company_name: str
    country: Optional[str] = None
    region: Optional[str] = None
    industry: Optional[str] = None
    segment_focus: str = "MIXED"
    max_results: int = 12
    exclude_domain: Optional[str] = None
    mode: str = "similar"


@dataclass
class DiscoveryResult:
    seeds: List[DiscoverySeed] = field(default_factory=list)
    used_providers: List[str] = field(default_factory=list)
    query: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "usedProviders": list(self.used_providers),
            "seedCount": len(self.seeds),
        }


def clamp_max_results(value: Optional[int]) -> int:
    try:
        parsed = int(value) if value is not None else 12
    except (TypeError, ValueError):
        parsed = 12
    return min(MAX_RESULTS, max(MIN_RESULTS, parsed))


def build_discovery_query(profile: DiscoveryProfile) -> str:
    """Combine a 'companies similar to X' phrase with profile terms."""
    if profile.mode == "profile" or not (profile.company_name or "").strip():
        lead = "companies"
    else:
        lead = f'companies similar to "{profile.company_name.strip()}"'

    segment = profile.segment_focus if profile.segment_focus in ("B2B", "B2C") else ""
    parts = [lead, profile.industry or "", segment, "reseller", profile.region or "", profile.country or ""]
    return " ".join(part.strip() for part in parts if part and part.strip())


def guess_name(title: str, url: str) -> str:
    """Prefer the page title cut at its first separator, else the domain label."""
    clean_title = re.sub(r"\s+", " ", title or "").strip()
    cut = clean_title
    for separator in _TITLE_SEPARATORS:
        cut = cut.split(separator)[0]
    cut = cut.strip()
    if len(cut) >= 3:
        return cut

    return domain_label(url)


def is_generic_title(name: str) -> bool:
    """True for listicle or directory titles like 'Top 10 retailers in Sweden'."""
    text = (name or "").strip()
    if not text or len(text) > MAX_TITLE_LENGTH:
        return True
    return any(pattern.search(text) for pattern in GENERIC_TITLE_PATTERNS)


def has_company_suffix(name: str) -> bool:
    text = (name or "").lower().replace(".", "")
    return any(re.search(rf"\b{re.escape(suffix)}\b", text) for suffix in COMPANY_SUFFIXES)


def domain_label(url: Optional[str]) -> str:
    """Domain head with dashes and underscores as spaces: 'best-buy.se' -> 'best buy'."""
    domain = to_domain(url)
    if not domain:
        return ""
    return re.sub(r"[-_]+", " ", domain.split(".")[0]).strip()


def looks_like_company(seed: DiscoverySeed) -> bool:
    """A seed names a company when its title does, or its domain label can stand in."""
    if not is_generic_title(seed.name) and len(seed.name.strip()) >= 3:
        return True
    label = domain_label(seed.website or seed.source_url)
    if len(label) < 3:
        return False
    return has_company_suffix(label) or not is_generic_title(label)


def rows_to_seeds(rows: List[Dict[str, Any]], source_type: str) -> List[DiscoverySeed]:
    seeds: List[DiscoverySeed] = []
    for row in rows:
        link = str(row.get("link") or "").strip()
        if not link:
            continue
        name = guess_name(str(row.get("title") or ""), link)
        if not name:
            continue
        seeds.append(
            DiscoverySeed(
                name=name,
                website=link,
                source_url=link,
                source_type=source_type,
                snippet=str(row.get("snippet") or "")[:SNIPPET_LENGTH],
            )
        )
    return seeds


def merge_seeds(
    batches: List[Tuple[str, List[DiscoverySeed]]],
    max_results: int,
    exclude_domain: Optional[str] = None,
) -> List[DiscoverySeed]:
    """Merge provider batches in order, deduping by name and domain.

    Seeds titled like a listicle are renamed to their domain label, or dropped
    when that label is no company name either.
    """
    excluded = to_domain(exclude_domain)
    seen_names = set()
    seen_domains = set()
    merged: List[DiscoverySeed] = []

    for _, seeds in batches:
        for seed in seeds:
            if not looks_like_company(seed):
                continue
            if is_generic_title(seed.name):
                seed = replace(seed, name=domain_label(seed.website or seed.source_url))
            name_key = normalize_company_name(seed.name)
            if not name_key or name_key in seen_names:
                continue
            domain = to_domain(seed.website or seed.source_url)
            if domain and (domain == excluded or domain in seen_domains):
                continue
            seen_names.add(name_key)
            if domain:
                seen_domains.add(domain)
            merged.append(seed)
            if len(merged) >= max_results:
                return merged
    return merged


_PROVIDERS = (("serper", serper), ("tavily", tavily))


def discover_external_seeds(profile: DiscoveryProfile) -> DiscoveryResult:
    """Query every configured search provider concurrently and merge the seeds."""
    max_results = clamp_max_results(profile.max_results)
    query = build_discovery_query(profile)
    per_provider = max(8, max_results)

    with ThreadPoolExecutor(max_workers=len(_PROVIDERS)) as executor:
        futures = [
            (name, executor.submit(client.search, query, per_provider)) for name, client in _PROVIDERS
        ]
        batches: List[Tuple[str, List[DiscoverySeed]]] = []
        for name, future in futures:
            try:
                rows = future.result()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Discovery provider %s failed: %s", name, exc)
                rows = []
            batches.append((name, rows_to_seeds(rows, name)))

    used_providers = [name for name, seeds in batches if seeds]
    seeds = merge_seeds(batches, max_results, profile.exclude_domain)
    logger.info(
        "Discovery query=%r providers=%s seeds=%d", query, ",".join(used_providers) or "none", len(seeds)
    )
    return DiscoveryResult(seeds=seeds, used_providers=used_providers, query=query)
