"""Research job: discover, validate and rank reseller candidates for a target company."""

import argparse
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from crm_research.core import discovery
from crm_research.core.config import get_settings
from crm_research.core.db import find_customer_by_id, find_customers
from crm_research.core.matcher import annotate_existing_customers
from crm_research.core.models import Candidate, DiscoverySeed, LlmResult, SimilarInput, SimilarOutput
from crm_research.core.prompt import (
    build_research_prompt,
    build_retry_prompt,
    build_task_payload,
    build_validation_prompt,
)
from crm_research.core.research_config import get_research_config
from crm_research.core.similarity import rank_similar_customers
from crm_research.core.site_snapshot import fetch_snapshots, normalize_url
from crm_research.etl.filters import hard_filter_candidates, normalize_company_name
from crm_research.etl.transform import (
    candidates_from_text,
    extract_json,
    extract_text_candidates,
    seeds_to_candidates,
    similar_to_candidates,
)
from crm_research.vendors import gemini

logger = logging.getLogger(__name__)

MAX_TARGET_WEBSITES = 6
MAX_ASSORTMENT_WEBSITES = 4
CRM_POOL_LIMIT = 100
SIMILAR_LOOKUP_LIMIT = 50
AI_UNAVAILABLE = "AI provider unavailable: GEMINI_API_KEY is not configured."
NO_CANDIDATES = "No candidates could be generated from AI output, external discovery or the CRM."


class ResearchInputError(ValueError):
    """Raised when a research request lacks a usable company identity."""


class CustomerNotFoundError(LookupError):
    """Raised when the referenced customer id does not exist."""


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clamp(value: Any, default: int, minimum: int, maximum: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return max(minimum, min(maximum, parsed))


@dataclass
class ResearchRequest:
    customer_id: Optional[str] = None
    company_name: Optional[str] = None
    country: Optional[str] = None
    region: Optional[str] = None
    seller: Optional[str] = None
    industry: Optional[str] = None
    websites: List[str] = field(default_factory=list)
    scope: Optional[str] = None
    max_similar: int = 10
    segment_focus: str = "MIXED"
    base_prompt: Optional[str] = None
    extra_instructions: Optional[str] = None
    external_only: bool = False
    external_mode: str = "similar"

    @classmethod
    def from_payload(cls, payload: Any) -> "ResearchRequest":
        if not isinstance(payload, dict):
            raise ResearchInputError("Request body must be a JSON object")

        customer_id = _text(payload.get("customerId"))
        company_name = _text(payload.get("companyName"))
        if not customer_id and not company_name:
            raise ResearchInputError("companyName or customerId is required")

        scope = payload.get("scope")
        segment = str(payload.get("segmentFocus") or "").upper()
        websites = payload.get("websites") or []

        return cls(
            customer_id=customer_id,
            company_name=company_name,
            country=_text(payload.get("country")),
            region=_text(payload.get("region")),
            seller=_text(payload.get("seller")),
            industry=_text(payload.get("industry")),
            websites=[str(item) for item in websites if _text(item)] if isinstance(websites, list) else [],
            scope=scope if scope in ("country", "region") else None,
            max_similar=_clamp(payload.get("maxSimilar"), 10, 1, 20),
            segment_focus=segment if segment in ("B2B", "B2C", "MIXED") else "MIXED",
            base_prompt=_text(payload.get("basePrompt")),
            extra_instructions=_text(payload.get("extraInstructions")),
            external_only=payload.get("externalOnly") is True,
            external_mode="profile" if payload.get("externalMode") == "profile" else "similar",
        )


@dataclass
class ResearchContext:
    """Per-request state threaded through the fallback ladder."""

    target: Dict[str, Any]
    prompt: str
    min_candidates: int
    seeds: List[DiscoverySeed] = field(default_factory=list)
    crm_ranked: List[SimilarOutput] = field(default_factory=list)
    primary_output: Optional[str] = None
    structured_ok: bool = False
    ai_error: Optional[str] = None
    retry_result: Optional[LlmResult] = None


def generate_safely(prompt: str) -> Tuple[Optional[LlmResult], Optional[str]]:
    """Call the generative provider; failures come back as an error string."""
    try:
        result = gemini.generate(prompt)
    except (gemini.GeminiError, requests.RequestException) as exc:
        logger.warning("AI generation failed: %s", exc)
        return None, f"AI generation failed: {exc}"
    if result is None:
        return None, AI_UNAVAILABLE
    return result, None


def parse_keep_list(text: str) -> List[str]:
    payload = extract_json(text)
    items: Any = payload
    if isinstance(payload, dict):
        items = next(
            (payload[key] for key in ("keep", "valid", "companies", "names", "candidates") if isinstance(payload.get(key), list)),
            [],
        )
    if not isinstance(items, list):
        return []

    names: List[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("name") or item.get("company") or item.get("company_name")
        name = _text(item)
        if name:
            names.append(name)
    return names


def cross_validate(target: Dict[str, Any], candidates: List[Candidate]) -> List[Candidate]:
    """Second LLM pass keeping only names judged to be real companies.

    Advisory only: any failure or an empty intersection keeps the input list.
    """
    result, error = generate_safely(build_validation_prompt(target, candidates))
    if error or result is None or not result.output_text:
        logger.info("Candidate validation skipped: %s", error or "empty response")
        return candidates

    keep = {normalize_company_name(name) for name in parse_keep_list(result.output_text)}
    keep.discard("")
    if not keep:
        return candidates

    validated = [candidate for candidate in candidates if normalize_company_name(candidate.name) in keep]
    logger.info("Validation kept %d of %d candidates", len(validated), len(candidates))
    return validated or candidates


def _from_external_seeds(ctx: ResearchContext) -> List[Candidate]:
    return hard_filter_candidates(seeds_to_candidates(ctx.seeds))


def _from_output_text(ctx: ResearchContext) -> List[Candidate]:
    if not ctx.primary_output or ctx.structured_ok:
        return []
    return hard_filter_candidates(extract_text_candidates(ctx.primary_output))


def _from_crm_ranking(ctx: ResearchContext) -> List[Candidate]:
    return similar_to_candidates(ctx.crm_ranked)


def _from_retry_generation(ctx: ResearchContext) -> List[Candidate]:
    if ctx.ai_error:
        return []
    result, error = generate_safely(build_retry_prompt(ctx.prompt, ctx.min_candidates, ctx.seeds))
    if error:
        ctx.ai_error = error
        return []
    ctx.retry_result = result
    return hard_filter_candidates(candidates_from_text(result.output_text if result else ""))


FALLBACK_LADDER: Tuple[Tuple[str, Callable[[ResearchContext], List[Candidate]]], ...] = (
    ("external-seeds", _from_external_seeds),
    ("text-extraction", _from_output_text),
    ("crm-ranking", _from_crm_ranking),
    ("retry-generation", _from_retry_generation),
)


def run_fallback_ladder(ctx: ResearchContext) -> Tuple[List[Candidate], Optional[str]]:
    for stage, producer in FALLBACK_LADDER:
        candidates = producer(ctx)
        if candidates:
            logger.info("Fallback stage %s produced %d candidates", stage, len(candidates))
            return candidates, stage
    return [], None


def _unique_urls(values: List[Optional[str]], limit: int, exclude: Optional[set] = None) -> List[str]:
    seen = set(exclude or ())
    urls: List[str] = []
    for value in values:
        url = normalize_url(value or "")
        if not url or url in seen:
            continue
        seen.add(url)
        urls.append(url)
    return urls[:limit]


def _crm_filters(request: ResearchRequest, target: Dict[str, Any], base_id: Optional[str]) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    if base_id:
        filters["exclude_id"] = base_id
    if request.scope == "country" and target.get("country"):
        filters["country"] = target["country"]
    if request.scope == "region" and target.get("region"):
        filters["region"] = target["region"]
    return filters


def run_research(payload: Any) -> Dict[str, Any]:
    """Run one research request end to end and return the response payload."""
    request = ResearchRequest.from_payload(payload)
    config = get_research_config()
    if request.scope is None:
        request.scope = config.default_scope

    base_customer = None
    if request.customer_id:
        base_customer = find_customer_by_id(request.customer_id)
        if not base_customer:
            raise CustomerNotFoundError(f"Customer not found: {request.customer_id}")
    base = base_customer or {}

    company_name = request.company_name or _text(base.get("name"))
    if not company_name:
        raise ResearchInputError("companyName or customerId is required")

    target = {
        "customerId": str(base["id"]) if base.get("id") is not None else None,
        "companyName": company_name,
        "country": request.country or _text(base.get("country")),
        "region": request.region or _text(base.get("region")),
        "seller": request.seller or _text(base.get("seller")),
        "industry": request.industry or _text(base.get("industry")),
        "potentialScore": float(base["potential_score"]) if base.get("potential_score") is not None else 50.0,
        "segmentFocus": request.segment_focus,
    }
    logger.info("Research started for %s (scope=%s)", company_name, request.scope)

    target_urls = _unique_urls([base.get("website"), *request.websites], MAX_TARGET_WEBSITES)
    assortment_urls = _unique_urls(
        [*config.vendor_websites, *config.brand_websites], MAX_ASSORTMENT_WEBSITES, exclude=set(target_urls)
    )
    snapshots = fetch_snapshots(target_urls + assortment_urls)
    website_snapshots = [snapshot for snapshot in snapshots if snapshot.url in target_urls]
    assortment_snapshots = [snapshot for snapshot in snapshots if snapshot.url not in target_urls]

    pool_rows = find_customers(_crm_filters(request, target, target["customerId"]), CRM_POOL_LIMIT)
    base_input = SimilarInput(
        id=target["customerId"] or "external-target",
        name=company_name,
        country=target["country"],
        region=target["region"],
        industry=target["industry"],
        seller=target["seller"],
        potential_score=target["potentialScore"],
    )
    crm_ranked = rank_similar_customers(base_input, [SimilarInput.from_row(row) for row in pool_rows])

    found = discovery.DiscoveryResult()
    if get_settings().has_search_provider:
        found = discovery.discover_external_seeds(
            discovery.DiscoveryProfile(
                company_name=company_name,
                country=target["country"],
                region=target["region"],
                industry=target["industry"],
                segment_focus=request.segment_focus,
                max_results=request.max_similar,
                exclude_domain=target_urls[0] if target_urls else None,
                mode=request.external_mode,
            )
        )

    task = build_task_payload(
        target=target,
        website_snapshots=website_snapshots,
        assortment_snapshots=assortment_snapshots,
        similar_customers=[] if request.external_only else crm_ranked[: request.max_similar],
        seeds=found.seeds,
        filters={
            "scope": request.scope,
            "maxResults": request.max_similar,
            "segmentFocus": request.segment_focus,
            "externalOnly": request.external_only,
            "excludeExistingCustomers": request.external_only,
            "mode": request.external_mode,
        },
        additional_instructions=[config.extra_instructions, request.extra_instructions or ""],
    )
    prompt = build_research_prompt(task, request.base_prompt)

    ai_result, ai_error = generate_safely(prompt)
    ctx = ResearchContext(
        target=target,
        prompt=prompt,
        min_candidates=min(request.max_similar, 5),
        seeds=found.seeds,
        crm_ranked=crm_ranked[: request.max_similar],
        primary_output=(ai_result.output_text or None) if ai_result else None,
        ai_error=ai_error,
    )

    candidates: List[Candidate] = []
    if ctx.primary_output:
        parsed = candidates_from_text(ctx.primary_output)
        ctx.structured_ok = bool(parsed)
        candidates = hard_filter_candidates(parsed)
        if candidates:
            candidates = cross_validate(target, candidates)

    fallback_stage = None
    if not candidates:
        candidates, fallback_stage = run_fallback_ladder(ctx)
    if ctx.retry_result is not None:
        ai_result = ctx.retry_result

    candidates = candidates[: request.max_similar]
    if candidates:
        candidates = annotate_existing_customers(candidates, find_customers())
    elif not ctx.ai_error:
        ctx.ai_error = NO_CANDIDATES

    logger.info(
        "Research finished for %s: %d candidates (fallback=%s, aiError=%s)",
        company_name,
        len(candidates),
        fallback_stage,
        bool(ctx.ai_error),
    )
    return {
        "query": {
            "customerId": target["customerId"],
            "companyName": company_name,
            "scope": request.scope,
            "country": target["country"],
            "region": target["region"],
            "seller": target["seller"],
            "industry": target["industry"],
            "segmentFocus": request.segment_focus,
            "maxSimilar": request.max_similar,
            "externalOnly": request.external_only,
            "externalMode": request.external_mode,
            "websites": target_urls,
        },
        "websiteSnapshots": [snapshot.to_dict() for snapshot in website_snapshots],
        "assortmentSnapshots": [snapshot.to_dict() for snapshot in assortment_snapshots],
        "similarCustomers": [candidate.to_dict() for candidate in candidates],
        "discovery": found.to_dict(),
        "fallbackStage": fallback_stage,
        "aiPrompt": prompt,
        "aiResult": ai_result.to_dict() if ai_result else None,
        "aiError": ctx.ai_error,
    }


def find_similar_customers(customer_id: str, scope: str = "region", limit: int = 10) -> Dict[str, Any]:
    """Rank CRM customers similar to one existing customer."""
    base = find_customer_by_id(customer_id)
    if not base:
        raise CustomerNotFoundError(f"Customer not found: {customer_id}")

    scope = "country" if scope == "country" else "region"
    filters: Dict[str, Any] = {"exclude_id": base["id"]}
    if base.get(scope):
        filters[scope] = base[scope]

    pool = [SimilarInput.from_row(row) for row in find_customers(filters, SIMILAR_LOOKUP_LIMIT)]
    ranked = rank_similar_customers(SimilarInput.from_row(base), pool)[:limit]
    return {
        "baseCustomerId": str(base["id"]),
        "scope": scope,
        "results": [row.to_dict() for row in ranked],
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run a reseller research request")
    parser.add_argument("--company", dest="company_name", help="Target company name")
    parser.add_argument("--customer-id", dest="customer_id", help="Existing CRM customer id")
    parser.add_argument("--country", dest="country", help="Country override")
    parser.add_argument("--region", dest="region", help="Region override")
    parser.add_argument("--industry", dest="industry", help="Industry override")
    parser.add_argument("--seller", dest="seller", help="Seller override")
    parser.add_argument("--website", dest="websites", action="append", default=[], help="Website to snapshot")
    parser.add_argument("--scope", dest="scope", choices=("region", "country"), help="CRM pool scope")
    parser.add_argument("--max-similar", dest="max_similar", type=int, default=10, help="Maximum candidates")
    parser.add_argument("--segment", dest="segment_focus", choices=("B2B", "B2C", "MIXED"), default="MIXED")
    parser.add_argument("--external-only", dest="external_only", action="store_true", help="Ask for external companies only")
    parser.add_argument("--external-mode", dest="external_mode", choices=("similar", "profile"), default="similar")
    return parser


def args_to_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload = {
        "companyName": args.company_name,
        "customerId": args.customer_id,
        "country": args.country,
        "region": args.region,
        "industry": args.industry,
        "seller": args.seller,
        "websites": args.websites,
        "scope": args.scope,
        "maxSimilar": args.max_similar,
        "segmentFocus": args.segment_focus,
        "externalOnly": args.external_only,
        "externalMode": args.external_mode,
    }
    return {key: value for key, value in payload.items() if value is not None}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        result = run_research(args_to_payload(args))
    except (ResearchInputError, CustomerNotFoundError) as exc:
        logger.error("Research request rejected: %s", exc)
        raise SystemExit(2) from exc

    print(json.dumps(result, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
