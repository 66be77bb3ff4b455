"""Prompt composition for research generation, validation and retry."""

import json
from typing import Any, Dict, List, Optional, Sequence

from crm_research.core.models import Candidate, DiscoverySeed, SimilarOutput, WebsiteSnapshot

DEFAULT_SYSTEM_PROMPT = "You are a senior GTM analyst for Vendora Nordic, a distributor of consumer tech accessories."

OUTPUT_CONTRACT = {
    "candidates": [
        {
            "company": "string",
            "website": "https://...",
            "country": "ISO country code",
            "region": "string",
            "industry": "string",
            "orgNumber": "string or null",
            "potential": "0-100",
            "match": "0-100",
            "reason": "one sentence: why this company is similar / a fit",
            "sourceUrl": "where the company was found, if any",
            "confidence": "high|medium|low",
        }
    ]
}

RULES = [
    "Return only real, currently operating companies; never articles, directories, lists or review sites.",
    "Ignore distributors and focus on reseller and end-retail opportunities.",
    "Prefer the company homepage as website; leave it empty rather than guessing.",
    "If the segment focus is B2B, rank business-facing resellers first; if B2C, consumer-facing first.",
    "Answer in English, as JSON matching outputContract, with no prose outside the JSON.",
]


def _snapshot_block(snapshots: Sequence[WebsiteSnapshot]) -> List[Dict[str, Any]]:
    return [
        {
            "url": snapshot.url,
            "title": snapshot.title,
            "description": snapshot.description,
            "h1": snapshot.h1,
            "fitScore": snapshot.vendora_fit_score,
            "sample": snapshot.text_sample[:500],
        }
        for snapshot in snapshots
    ]


def build_task_payload(
    *,
    target: Dict[str, Any],
    website_snapshots: Sequence[WebsiteSnapshot],
    assortment_snapshots: Sequence[WebsiteSnapshot],
    similar_customers: Sequence[SimilarOutput],
    seeds: Sequence[DiscoverySeed],
    filters: Dict[str, Any],
    additional_instructions: Sequence[str],
) -> Dict[str, Any]:
    """Structured task handed to the model alongside the system prompt."""
    return {
        "task": "Find reseller companies that resemble the target company and fit our assortment.",
        "target": target,
        "targetWebsites": _snapshot_block(website_snapshots),
        "assortment": _snapshot_block(assortment_snapshots),
        "crmReferenceCustomers": [
            {
                "name": row.name,
                "country": row.country,
                "region": row.region,
                "industry": row.industry,
                "potential": row.potential_score,
                "match": row.match_score,
            }
            for row in list(similar_customers)[:10]
        ],
        "discoverySeeds": [
            {"name": seed.name, "website": seed.website, "source": seed.source_type, "snippet": seed.snippet[:200]}
            for seed in seeds
        ],
        "filters": filters,
        "rules": RULES,
        "additionalInstructions": [text for text in additional_instructions if text],
        "outputContract": OUTPUT_CONTRACT,
    }


def build_research_prompt(payload: Dict[str, Any], base_prompt: Optional[str] = None) -> str:
    system = (base_prompt or "").strip() or DEFAULT_SYSTEM_PROMPT
    return "\n".join(
        [
            system,
            "",
            "TASK (JSON):",
            json.dumps(payload, ensure_ascii=False, indent=2),
        ]
    )


def build_validation_prompt(target: Dict[str, Any], candidates: Sequence[Candidate]) -> str:
    listing = "\n".join(
        f"- {candidate.name}" + (f" ({candidate.website})" if candidate.website else "") for candidate in candidates
    )
    return "\n".join(
        [
            "You validate prospect lists for a consumer tech accessories distributor.",
            f"Target company: {target.get('companyName')} "
            f"(country={target.get('country') or '-'}, region={target.get('region') or '-'}, "
            f"industry={target.get('industry') or '-'})",
            "",
            "Candidates:",
            listing,
            "",
            "Keep only names that are real companies and plausible resellers in this context.",
            'Return JSON only: {"keep": ["exact candidate name", ...]}',
        ]
    )


def build_retry_prompt(prompt: str, min_candidates: int, seeds: Sequence[DiscoverySeed]) -> str:
    hints = ", ".join(seed.name for seed in seeds[:15])
    lines = [
        prompt,
        "",
        "IMPORTANT: The previous answer could not be used.",
        f"Return STRICT JSON only, in the form {{\"candidates\": [...]}} with at least {min_candidates} companies.",
        "No markdown, no commentary, no code fences.",
    ]
    if hints:
        lines.append(f"You may start from these discovered companies if they fit: {hints}")
    return "\n".join(lines)
