"""Core data models shared by the research pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class Candidate:
    """A prospective reseller surfaced by discovery, the LLM or the CRM."""

    id: str
    name: str
    country: Optional[str] = None
    region: Optional[str] = None
    industry: Optional[str] = None
    seller: Optional[str] = None
    potential_score: float = 50
    match_score: float = 50
    website: Optional[str] = None
    organization_number: Optional[str] = None
    reason: Optional[str] = None
    source_type: str = "estimated"
    source_url: Optional[str] = None
    confidence: str = "medium"
    total_score: Optional[float] = None
    similarity_score: Optional[float] = None
    already_customer: bool = False
    existing_customer_id: Optional[str] = None
    existing_customer_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "country": self.country,
            "region": self.region,
            "industry": self.industry,
            "seller": self.seller,
            "potentialScore": self.potential_score,
            "matchScore": self.match_score,
            "website": self.website,
            "organizationNumber": self.organization_number,
            "reason": self.reason,
            "sourceType": self.source_type,
            "sourceUrl": self.source_url,
            "confidence": self.confidence,
            "totalScore": self.total_score,
            "similarityScore": self.similarity_score,
            "alreadyCustomer": self.already_customer,
            "existingCustomerId": self.existing_customer_id,
            "existingCustomerName": self.existing_customer_name,
        }


@dataclass(slots=True)
class DiscoverySeed:
    """Raw company-like search hit from an external provider."""

    name: str
    source_url: str
    source_type: str
    website: Optional[str] = None
    snippet: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "website": self.website,
            "sourceUrl": self.source_url,
            "sourceType": self.source_type,
            "snippet": self.snippet,
        }


@dataclass(slots=True)
class WebsiteSnapshot:
    url: str
    text_sample: str
    vendora_fit_score: int
    title: Optional[str] = None
    description: Optional[str] = None
    h1: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "description": self.description,
            "h1": self.h1,
            "textSample": self.text_sample,
            "vendoraFitScore": self.vendora_fit_score,
        }


@dataclass(slots=True)
class SimilarInput:
    """CRM customer projection used by the similarity ranker."""

    id: str
    name: str
    country: Optional[str] = None
    region: Optional[str] = None
    industry: Optional[str] = None
    seller: Optional[str] = None
    potential_score: Optional[float] = 50

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "SimilarInput":
        return cls(
            id=str(row.get("id")),
            name=str(row.get("name") or ""),
            country=row.get("country"),
            region=row.get("region"),
            industry=row.get("industry"),
            seller=row.get("seller"),
            potential_score=float(row["potential_score"]) if row.get("potential_score") is not None else None,
        )


@dataclass(slots=True)
class SimilarOutput(SimilarInput):
    match_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "country": self.country,
            "region": self.region,
            "industry": self.industry,
            "seller": self.seller,
            "potentialScore": self.potential_score,
            "matchScore": self.match_score,
        }


@dataclass(slots=True)
class LlmResult:
    model: str
    output_text: str
    provider: str = "gemini"

    def to_dict(self) -> Dict[str, Any]:
        return {"provider": self.provider, "model": self.model, "outputText": self.output_text}


@dataclass(slots=True)
class RegionGroup:
    country: str
    regions: List[str] = field(default_factory=list)


@dataclass(slots=True)
class ResearchConfig:
    """Persisted research settings (singleton row in app_settings)."""

    vendor_websites: List[str] = field(default_factory=list)
    brand_websites: List[str] = field(default_factory=list)
    extra_instructions: str = ""
    default_scope: str = "region"
    industries: List[str] = field(default_factory=list)
    countries: List[str] = field(default_factory=list)
    regions_by_country: List[RegionGroup] = field(default_factory=list)
    sellers: List[str] = field(default_factory=list)
    required_customer_fields: List[str] = field(default_factory=list)
    reminders_enabled: bool = True
    reminder_days_before_deadline: int = 7
    inactivity_reminder_days: int = 30
    reminder_recipients: List[str] = field(default_factory=list)
    notify_via_slack: bool = False
    slack_webhook_url: str = ""
    notify_via_email: bool = False
    gmail_from: str = ""
    gmail_reply_to: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vendorWebsites": list(self.vendor_websites),
            "brandWebsites": list(self.brand_websites),
            "extraInstructions": self.extra_instructions,
            "defaultScope": self.default_scope,
            "industries": list(self.industries),
            "countries": list(self.countries),
            "regionsByCountry": [
                {"country": group.country, "regions": list(group.regions)} for group in self.regions_by_country
            ],
            "sellers": list(self.sellers),
            "requiredCustomerFields": list(self.required_customer_fields),
            "remindersEnabled": self.reminders_enabled,
            "reminderDaysBeforeDeadline": self.reminder_days_before_deadline,
            "inactivityReminderDays": self.inactivity_reminder_days,
            "reminderRecipients": list(self.reminder_recipients),
            "notifyViaSlack": self.notify_via_slack,
            "slackWebhookUrl": self.slack_webhook_url,
            "notifyViaEmail": self.notify_via_email,
            "gmailFrom": self.gmail_from,
            "gmailReplyTo": self.gmail_reply_to,
        }
