"""Translate a validated QuoteSubmission into HubSpot request bodies.

Pure functions, no I/O. The CRM schema in use has no structured fields for
services or files, so both go into the deal's free-text description.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from pydantic.alias_generators import to_camel

from src.models.enums import BUDGET_DEAL_AMOUNTS
from src.schemas.quote import ContactInfo, QuoteSubmission, TrackingContext, parse_iso_date

DEAL_PIPELINE = "default"
DEAL_STAGE = "qualifiedtobuy"
CONTACT_TO_DEAL_ASSOCIATION = 3
CLOSE_DATE_OFFSET_DAYS = 30
DEFAULT_PAGE_NAME = "Get Quote Form"
DEFAULT_PAGE_PATH = "/get-quote"

CONSENT_TEXT = "I agree to allow Canadian Metal Fabricators to store and process my personal data."
COMMUNICATIONS_TEXT = "I agree to receive marketing communications from Canadian Metal Fabricators."
COMMUNICATIONS_SUBSCRIPTION_TYPE_ID = 999999


@dataclass(frozen=True)
class FileManifestEntry:
    """A file referenced (by name and size only) in the deal description."""

    name: str
    size: int


def deal_amount(submission: QuoteSubmission) -> int:
    budget = submission.project.budget
    return BUDGET_DEAL_AMOUNTS.get(budget, 0) if budget else 0


def close_date(required_date: str) -> date:
    """Required date plus the offset, capped at the last representable date."""
    offset = timedelta(days=CLOSE_DATE_OFFSET_DAYS)
    parsed = parse_iso_date(required_date) or date.today()
    return min(parsed, date.max - offset) + offset


def build_contact_properties(contact: ContactInfo) -> dict[str, str]:
    return {
        "email": contact.email,
        "firstname": contact.first_name,
        "lastname": contact.last_name,
        "phone": contact.phone or "",
        "company": contact.company or "",
        "jobtitle": contact.job_title or "",
        "lifecyclestage": "lead",
    }


def build_deal_description(submission: QuoteSubmission, manifest: Sequence[FileManifestEntry]) -> str:
    project = submission.project
    services = [to_camel(name) for name in submission.services.selected]
    if submission.services.other:
        services.append("other")

    description = (
        f"Project: {project.project_type.value}\n"
        f"Material: {project.material.value}\n"
        f"Quantity: {project.quantity}\n"
        f"Description: {project.description}\n"
        f"Services: {', '.join(services)}"
    )
    if manifest:
        description += f"\n\nAttached Files ({len(manifest)}):\n"
        for entry in manifest:
            description += f"- {entry.name} ({entry.size / 1024:.2f} KB)\n"
    return description


def build_deal_payload(
    submission: QuoteSubmission,
    manifest: Sequence[FileManifestEntry],
    contact_id: str,
) -> dict[str, Any]:
    return {
        "properties": {
            "dealname": f"{submission.contact.company} - {submission.project.project_name}",
            "pipeline": DEAL_PIPELINE,
            "dealstage": DEAL_STAGE,
            "amount": str(deal_amount(submission)),
            "closedate": close_date(submission.project.required_date).isoformat(),
            "description": build_deal_description(submission, manifest),
        },
        "associations": [
            {
                "to": {"id": contact_id},
                "types": [
                    {
                        "associationCategory": "HUBSPOT_DEFINED",
                        "associationTypeId": CONTACT_TO_DEAL_ASSOCIATION,
                    },
                ],
            },
        ],
    }


def build_forms_submission(
    submission: QuoteSubmission,
    page_context: TrackingContext | None,
    site_url: str,
) -> dict[str, Any]:
    """Body for the Forms API, which ties the quote to the visitor's analytics cookie."""
    contact = submission.contact
    project = submission.project
    page = page_context or TrackingContext()

    message = (
        f"Project: {project.project_name}\n"
        f"Type: {project.project_type.value}\n"
        f"Material: {project.material.value}\n"
        f"Quantity: {project.quantity}\n"
        f"Budget: {project.budget.value if project.budget else 'Not specified'}\n"
        f"Required Date: {project.required_date}\n"
        f"Description: {project.description}"
    )

    context: dict[str, Any] = {
        "pageUri": page.page_uri or f"{site_url.rstrip('/')}{DEFAULT_PAGE_PATH}",
        "pageName": page.page_name or DEFAULT_PAGE_NAME,
    }
    if page.hutk:
        context["hutk"] = page.hutk
    ip_address = submission.metadata.ip_address if submission.metadata else None
    if ip_address and ip_address != "unknown":
        context["ipAddress"] = ip_address

    return {
        "fields": [
            {"name": "email", "value": contact.email},
            {"name": "firstname", "value": contact.first_name},
            {"name": "lastname", "value": contact.last_name},
            {"name": "phone", "value": contact.phone},
            {"name": "company", "value": contact.company},
            {"name": "jobtitle", "value": contact.job_title or ""},
            {"name": "message", "value": message},
        ],
        "context": context,
        "legalConsentOptions": {
            "consent": {
                "consentToProcess": True,
                "text": CONSENT_TEXT,
                "communications": [
                    {
                        "value": True,
                        "subscriptionTypeId": COMMUNICATIONS_SUBSCRIPTION_TYPE_ID,
                        "text": COMMUNICATIONS_TEXT,
                    },
                ],
            },
        },
    }
