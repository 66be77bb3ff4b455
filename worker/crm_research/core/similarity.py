"""Weighted similarity ranking of CRM customers against a base profile."""

import math
from typing import List, Optional, Sequence

from crm_research.core.models import SimilarInput, SimilarOutput

COUNTRY_WEIGHT = 30
REGION_WEIGHT = 20
INDUSTRY_WEIGHT = 25
SELLER_WEIGHT = 10
POTENTIAL_PROXIMITY_MAX = 15
DEFAULT_POTENTIAL = 50


def _potential(value: Optional[float]) -> float:
    return DEFAULT_POTENTIAL if value is None else float(value)


def _same(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and left == right


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def similarity_component(base: SimilarInput, candidate: SimilarInput) -> float:
    similarity = 0.0
    if _same(base.country, candidate.country):
        similarity += COUNTRY_WEIGHT
    if _same(base.region, candidate.region):
        similarity += REGION_WEIGHT
    if _same(base.industry, candidate.industry):
        similarity += INDUSTRY_WEIGHT
    if _same(base.seller, candidate.seller):
        similarity += SELLER_WEIGHT

    gap = abs(_potential(base.potential_score) - _potential(candidate.potential_score))
    similarity += max(0.0, POTENTIAL_PROXIMITY_MAX - gap / 2)
    return similarity


def rank_similar_customers(base: SimilarInput, candidates: Sequence[SimilarInput]) -> List[SimilarOutput]:
    """Score and sort candidates by similarity plus half their potential.

    Deterministic and side-effect free; equal scores keep their input order.
    """
    ranked: List[SimilarOutput] = []
    for candidate in candidates:
        priority = _potential(candidate.potential_score) * 0.5
        score = _round_half_up(similarity_component(base, candidate) + priority)
        ranked.append(
            SimilarOutput(
                id=candidate.id,
                name=candidate.name,
                country=candidate.country,
                region=candidate.region,
                industry=candidate.industry,
                seller=candidate.seller,
                potential_score=candidate.potential_score,
                match_score=score,
            )
        )
    ranked.sort(key=lambda row: row.match_score, reverse=True)
    return ranked
