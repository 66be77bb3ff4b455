"""Utilities for turning LLM output, search seeds and CRM rows into candidates."""

import json
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from crm_research.core.models import Candidate, DiscoverySeed, SimilarOutput

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50.0
CONFIDENCE_LEVELS = ("high", "medium", "low")

# Ordered (canonical field -> source keys); the first present, non-empty key wins.
FIELD_ALIASES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("name", ("company", "company_name", "companyName", "name", "title")),
    ("country", ("country", "country_code", "countryCode")),
    ("region", ("region", "state", "city", "area")),
    ("industry", ("industry", "sector", "vertical", "category")),
    ("seller", ("seller", "owner", "account_owner")),
    ("potential_score", ("potential", "potential_score", "potentialScore")),
    ("match_score", ("match", "match_score", "matchScore", "score", "fit_score", "fitScore")),
    ("website", ("url", "website", "homepage", "domain", "site")),
    ("organization_number", ("orgNumber", "org_no", "orgNo", "organization_number", "organizationNumber", "orgnr")),
    ("reason", ("reason", "why_similar", "whySimilar", "rationale", "why", "why_now", "notes")),
    ("source_type", ("sourceType", "source_type", "source")),
    ("source_url", ("sourceUrl", "source_url", "evidence_url", "evidenceUrl")),
    ("confidence", ("confidence", "certainty")),
    ("total_score", ("totalScore", "total_score")),
    ("similarity_score", ("similarityScore", "similarity_score", "similarity")),
)

CANDIDATE_LIST_KEYS = (
    "candidates",
    "similarCustomers",
    "similar_customers",
    "results",
    "recommended_targets",
    "recommendedTargets",
    "companies",
    "targets",
    "Top10_Priority",
    "top10_priority",
)

_FENCED_JSON_RE = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_FENCED_ANY_RE = re.compile(r"```[a-zA-Z0-9_-]*\s*(.*?)```", re.DOTALL)
_NUMBER_RE = re.compile(r"-?\d+(?:[.,]\d+)?")
_BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.*)$")
_NAME_SPLIT_RE = re.compile(r"\s+[-–|]\s+|:\s+|\s+\(")


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    value_str = str(value).strip()
    return value_str or None


def _json_candidates(text: str) -> List[str]:
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    candidates = [trimmed]
    candidates.extend(match.strip() for match in _FENCED_JSON_RE.findall(trimmed))
    candidates.extend(match.strip() for match in _FENCED_ANY_RE.findall(trimmed))
    for opener, closer in (("{", "}"), ("[", "]")):
        start, end = trimmed.find(opener), trimmed.rfind(closer)
        if start != -1 and end > start:
            candidates.append(trimmed[start : end + 1])
    return candidates


def extract_json(text: str, expect: Sequence[Type] = (dict, list)) -> Optional[Any]:
    """Return the first parseable JSON object/array found in LLM output.

    Tries the raw text, ```json fences, generic fences and finally the outermost
    brace/bracket span. Prose without JSON returns None.
    """
    accepted = tuple(expect)
    for candidate in _json_candidates(text):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, accepted):
            return parsed
    return None


def find_candidate_rows(payload: Any) -> List[Dict[str, Any]]:
    """Locate the list of candidate rows inside a parsed LLM payload."""
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if not isinstance(payload, dict):
        return []

    for key in CANDIDATE_LIST_KEYS:
        value = payload.get(key)
        if isinstance(value, list):
            return [row for row in value if isinstance(row, dict)]

    groups = payload.get("candidate_groups") or payload.get("candidateGroups")
    if isinstance(groups, dict):
        closest = groups.get("closest_overall_match")
        if isinstance(closest, list):
            return [row for row in closest if isinstance(row, dict)]
        for value in groups.values():
            if isinstance(value, list):
                return [row for row in value if isinstance(row, dict)]
    return []


def parse_score(value: Any, default: float = DEFAULT_SCORE) -> float:
    """Parse 85, "85", "85%" or "85/100" into a finite float, else the default."""
    if isinstance(value, bool) or value is None:
        return default
    try:
        if isinstance(value, (int, float)):
            parsed = float(value)
        else:
            match = _NUMBER_RE.search(str(value))
            if not match:
                return default
            parsed = float(match.group(0).replace(",", "."))
    except (OverflowError, ValueError):
        return default
    return parsed if math.isfinite(parsed) else default


def resolve_aliases(row: Dict[str, Any]) -> Dict[str, Any]:
    resolved: Dict[str, Any] = {}
    for canonical, keys in FIELD_ALIASES:
        for key in keys:
            value = row.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            resolved[canonical] = value
            break
    return resolved


def _confidence(value: Any, default: str) -> str:
    text = (_strip_or_none(value) or "").lower()
    return text if text in CONFIDENCE_LEVELS else default


def normalize_candidate_row(
    row: Dict[str, Any],
    index: int,
    *,
    default_source: str = "estimated",
    default_confidence: str = "medium",
) -> Optional[Candidate]:
    """Map an arbitrarily keyed row onto a Candidate; rows without a name give None."""
    if not isinstance(row, dict):
        return None
    fields = resolve_aliases(row)
    name = _strip_or_none(fields.get("name"))
    if not name:
        return None

    optional_scores = {}
    for key in ("total_score", "similarity_score"):
        if key in fields:
            optional_scores[key] = parse_score(fields[key])

    return Candidate(
        id=_strip_or_none(row.get("id")) or f"{default_source}-{index + 1}",
        name=name,
        country=_strip_or_none(fields.get("country")),
        region=_strip_or_none(fields.get("region")),
        industry=_strip_or_none(fields.get("industry")),
        seller=_strip_or_none(fields.get("seller")),
        potential_score=max(0.0, min(100.0, parse_score(fields.get("potential_score")))),
        match_score=max(0.0, parse_score(fields.get("match_score"))),
        website=_strip_or_none(fields.get("website")),
        organization_number=_strip_or_none(fields.get("organization_number")),
        reason=_strip_or_none(fields.get("reason")),
        source_type=_strip_or_none(fields.get("source_type")) or default_source,
        source_url=_strip_or_none(fields.get("source_url")),
        confidence=_confidence(fields.get("confidence"), default_confidence),
        **optional_scores,
    )


def normalize_candidates(rows: Iterable[Dict[str, Any]], **kwargs: Any) -> List[Candidate]:
    candidates: List[Candidate] = []
    for index, row in enumerate(rows):
        candidate = normalize_candidate_row(row, index, **kwargs)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def candidates_from_text(text: str) -> List[Candidate]:
    """Structured extraction: JSON payload -> rows -> candidates (may be empty)."""
    payload = extract_json(text)
    if payload is None:
        return []
    return normalize_candidates(find_candidate_rows(payload))


def extract_text_candidates(text: str, limit: int = 20) -> List[Candidate]:
    """Fallback extraction from bullet or numbered lines of free-text output."""
    candidates: List[Candidate] = []
    for line in (text or "").splitlines():
        match = _BULLET_RE.match(line)
        if not match:
            continue
        body = match.group(1).replace("**", "").replace("__", "").strip()
        parts = _NAME_SPLIT_RE.split(body, maxsplit=1)
        name = parts[0].strip().strip("*_`\"'").strip()
        if not name:
            continue
        reason = parts[1].strip().rstrip(")") if len(parts) > 1 else None
        candidates.append(
            Candidate(
                id=f"text-{len(candidates) + 1}",
                name=name,
                reason=reason or None,
                source_type="estimated",
                confidence="low",
            )
        )
        if len(candidates) >= limit:
            break
    return candidates


def seeds_to_candidates(seeds: Iterable[DiscoverySeed]) -> List[Candidate]:
    return [
        Candidate(
            id=f"{seed.source_type}-{index + 1}",
            name=seed.name,
            website=seed.website,
            reason=seed.snippet or None,
            source_type=seed.source_type,
            source_url=seed.source_url,
            confidence="low",
        )
        for index, seed in enumerate(seeds)
    ]


def similar_to_candidates(ranked: Iterable[SimilarOutput]) -> List[Candidate]:
    candidates: List[Candidate] = []
    for row in ranked:
        potential = row.potential_score if row.potential_score is not None else DEFAULT_SCORE
        candidates.append(
            Candidate(
                id=row.id,
                name=row.name,
                country=row.country,
                region=row.region,
                industry=row.industry,
                seller=row.seller,
                potential_score=float(potential),
                match_score=float(row.match_score),
                reason="Ranked by CRM similarity",
                source_type="crm-fallback",
                confidence="medium",
                similarity_score=float(row.match_score),
            )
        )
    return candidates
