"""Research settings stored as a single JSON app setting."""

import logging
import math
from dataclasses import replace
from typing import Any, Dict, List

import psycopg2

from crm_research.core import db
from crm_research.core.models import RegionGroup, ResearchConfig

logger = logging.getLogger(__name__)

RESEARCH_CONFIG_KEY = "research_config"
ALLOWED_REQUIRED_FIELDS = ("name", "industry", "country", "seller")

DEFAULT_INDUSTRIES = [
    "Consumer Electronics",
    "Computer & IT Retail",
    "Mobile & Telecom Retail",
    "Office Supplies & Workplace",
    "B2B IT Reseller",
    "B2B E-commerce",
    "Managed Service Provider (MSP)",
    "System Integrator",
    "AV & Meeting Room Solutions",
    "Smart Home Retail",
    "Home Electronics & Appliances",
    "Photo & Video Retail",
    "Gaming & Esports Retail",
    "Education & School Supplier",
    "Public Sector Procurement",
    "Industrial & Field Service Supply",
    "Hospitality & POS Solutions",
    "Security & Surveillance Integrator",
    "Lifestyle & Design Retail",
    "Marketplace / Pure E-tail",
]

DEFAULT_REGIONS_BY_COUNTRY = [
    RegionGroup("SE", ["Stockholm", "Vastra Gotaland", "Skane", "Ostergotland", "Jonkoping", "Uppsala", "Halland", "Sodermanland"]),
    RegionGroup("NO", ["Oslo", "Viken", "Vestland", "Rogaland", "Trondelag", "Agder", "Innlandet", "Troms og Finnmark"]),
    RegionGroup("DK", ["Hovedstaden", "Sjaelland", "Syddanmark", "Midtjylland", "Nordjylland"]),
    RegionGroup("FI", ["Uusimaa", "Pirkanmaa", "Varsinais-Suomi", "Pohjois-Pohjanmaa", "Keski-Suomi", "Satakunta", "Pohjanmaa", "Lappi"]),
]


def default_research_config() -> ResearchConfig:
    return ResearchConfig(
        vendor_websites=["https://www.vendora.se"],
        industries=list(DEFAULT_INDUSTRIES),
        countries=["SE", "NO", "DK", "FI"],
        regions_by_country=[RegionGroup(g.country, list(g.regions)) for g in DEFAULT_REGIONS_BY_COUNTRY],
        sellers=["Team Nordics"],
        required_customer_fields=list(ALLOWED_REQUIRED_FIELDS),
    )


def unique_trimmed(values: Any, limit: int = 50) -> List[str]:
    """Trim, drop empties and dedupe a list, keeping the first occurrence."""
    if not isinstance(values, (list, tuple)):
        return []
    seen = set()
    result: List[str] = []
    for item in values:
        text = str(item if item is not None else "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result[:limit]


def _normalize_regions(value: Any) -> List[RegionGroup]:
    if not isinstance(value, list):
        return []
    groups: List[RegionGroup] = []
    seen = set()
    for row in value:
        if not isinstance(row, dict):
            continue
        country = str(row.get("country") or "").strip().upper()
        if not country or country in seen:
            continue
        seen.add(country)
        groups.append(RegionGroup(country, unique_trimmed(row.get("regions"), 120)))
    return groups


def _normalize_required_fields(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in unique_trimmed(value) if item in ALLOWED_REQUIRED_FIELDS]


def _clamp_int(value: Any, fallback: int, minimum: int, maximum: int) -> int:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return max(minimum, min(maximum, int(round(parsed))))


def normalize_research_config(value: Any) -> ResearchConfig:
    """Coerce an arbitrary JSON payload into a ResearchConfig.

    Lists that normalise to empty fall back to the defaults so the research
    page always has vendor websites, industries, countries and sellers to offer.
    """
    data: Dict[str, Any] = value if isinstance(value, dict) else {}
    defaults = default_research_config()

    config = ResearchConfig(
        vendor_websites=unique_trimmed(data.get("vendorWebsites"), 30),
        brand_websites=unique_trimmed(data.get("brandWebsites"), 30),
        extra_instructions=str(data.get("extraInstructions") or "").strip(),
        default_scope="country" if data.get("defaultScope") == "country" else "region",
        industries=unique_trimmed(data.get("industries"), 50),
        countries=unique_trimmed(data.get("countries"), 50),
        regions_by_country=_normalize_regions(data.get("regionsByCountry")),
        sellers=unique_trimmed(data.get("sellers"), 50),
        required_customer_fields=_normalize_required_fields(data.get("requiredCustomerFields")),
        reminders_enabled=data.get("remindersEnabled") is not False,
        reminder_days_before_deadline=_clamp_int(data.get("reminderDaysBeforeDeadline"), 7, 1, 60),
        inactivity_reminder_days=_clamp_int(data.get("inactivityReminderDays"), 30, 1, 365),
        reminder_recipients=unique_trimmed(data.get("reminderRecipients"), 40),
        notify_via_slack=data.get("notifyViaSlack") is True,
        slack_webhook_url=str(data.get("slackWebhookUrl") or "").strip(),
        notify_via_email=data.get("notifyViaEmail") is True,
        gmail_from=str(data.get("gmailFrom") or "").strip(),
        gmail_reply_to=str(data.get("gmailReplyTo") or "").strip(),
    )

    return replace(
        config,
        vendor_websites=config.vendor_websites or defaults.vendor_websites,
        industries=config.industries or defaults.industries,
        countries=config.countries or defaults.countries,
        regions_by_country=config.regions_by_country or defaults.regions_by_country,
        sellers=config.sellers or defaults.sellers,
        required_customer_fields=config.required_customer_fields or defaults.required_customer_fields,
    )


def get_research_config() -> ResearchConfig:
    """Read the stored config, falling back to defaults when absent or unreadable."""
    try:
        stored = db.get_app_setting(RESEARCH_CONFIG_KEY)
    except (psycopg2.Error, RuntimeError) as exc:
        logger.warning("Unable to read research config, using defaults: %s", exc)
        return default_research_config()

    if stored is None:
        return default_research_config()
    return normalize_research_config(stored)


def save_research_config(value: Any) -> ResearchConfig:
    """Normalise and persist the research config, returning what was stored."""
    config = normalize_research_config(value)
    db.upsert_app_setting(RESEARCH_CONFIG_KEY, config.to_dict())
    logger.info("Saved research config (%d vendor websites)", len(config.vendor_websites))
    return config
