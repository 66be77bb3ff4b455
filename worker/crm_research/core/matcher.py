"""Flag candidates that already exist as CRM customers."""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Sequence

from crm_research.core.models import Candidate
from crm_research.etl.filters import normalize_company_name, to_domain


def build_customer_lookups(customers: Iterable[Dict[str, Any]]):
    """Return (by_name, by_domain) maps; the first customer per key wins."""
    by_name: Dict[str, Dict[str, Any]] = {}
    by_domain: Dict[str, Dict[str, Any]] = {}
    for customer in customers:
        name_key = normalize_company_name(customer.get("name"))
        if name_key and name_key not in by_name:
            by_name[name_key] = customer
        domain = to_domain(customer.get("website"))
        if domain and domain not in by_domain:
            by_domain[domain] = customer
    return by_name, by_domain


def annotate_existing_customers(
    candidates: Sequence[Candidate],
    customers: Iterable[Dict[str, Any]],
) -> List[Candidate]:
    """Return copies of candidates marked with the customer they match.

    Matches by website domain first, then by normalised name. Inputs are not
    modified.
    """
    by_name, by_domain = build_customer_lookups(customers)
    annotated: List[Candidate] = []
    for candidate in candidates:
        domain = to_domain(candidate.website or candidate.source_url)
        match = by_domain.get(domain) if domain else None
        if match is None:
            match = by_name.get(normalize_company_name(candidate.name))

        annotated.append(
            replace(
                candidate,
                already_customer=match is not None,
                existing_customer_id=str(match["id"]) if match is not None else None,
                existing_customer_name=match.get("name") if match is not None else None,
            )
        )
    return annotated
