"""The quick "hero" quote form.

Collects five fields and maps them onto a full QuoteSubmission document with
fixed defaults for everything the light form omits. The submission is
tagged ``metadata.source = "hero-form"`` so the endpoint can apply its
scoped defaults.
"""

from __future__ import annotations

import re
import secrets
import string
import time
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, EmailStr, Field

from src.models.enums import FileStatus, MaterialType, ProjectType
from src.schemas.quote import QuoteSubmissionResponse
from src.wizard.client import FilePayload, QuoteApiClient

HERO_SOURCE = "hero-form"
HERO_PROJECT_NAME = "Hero Form Quote Request"
DEFAULT_PHONE = "416-555-0000"
DEFAULT_COMPANY = "Individual"
DEFAULT_LAST_NAME = "Unknown"
LEAD_TIME_DAYS = 45

_NON_DIGIT_RE = re.compile(r"\D")
_ID_ALPHABET = string.digits + string.ascii_lowercase


class HeroQuoteRequest(BaseModel):
    """What the hero form asks for."""

    project_details: str = Field(min_length=10, alias="projectDetails")
    contact_name: str = Field(min_length=1, alias="contactName")
    email: EmailStr
    phone: str | None = None
    company: str | None = None

    model_config = {"populate_by_name": True}


def format_phone(phone: str | None) -> str:
    """Reformat to XXX-XXX-XXXX, or the placeholder when under 10 digits."""
    digits = _NON_DIGIT_RE.sub("", phone or "")
    if len(digits) < 10:
        return DEFAULT_PHONE
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:10]}"


def split_name(full_name: str) -> tuple[str, str]:
    parts = full_name.split()
    if not parts:
        return "", DEFAULT_LAST_NAME
    return parts[0], " ".join(parts[1:]) or DEFAULT_LAST_NAME


def _file_entry(payload: FilePayload) -> dict[str, Any]:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return {
        "id": f"{int(time.time() * 1000)}-{suffix}",
        "name": payload.name,
        "size": len(payload.content),
        "type": payload.content_type,
        "uploadedAt": datetime.now(timezone.utc).isoformat(),
        "status": FileStatus.SUCCESS.value,
    }


def build_hero_submission(
    request: HeroQuoteRequest,
    files: Sequence[FilePayload] = (),
    tracking: Mapping[str, Any] | None = None,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Map the hero form onto a full submission document (wire shape)."""
    first_name, last_name = split_name(request.contact_name)
    required_date = (today or date.today()) + timedelta(days=LEAD_TIME_DAYS)

    document: dict[str, Any] = {
        "contact": {
            "firstName": first_name,
            "lastName": last_name,
            "email": str(request.email),
            "phone": format_phone(request.phone),
            "company": request.company or DEFAULT_COMPANY,
        },
        "project": {
            "projectName": HERO_PROJECT_NAME,
            "description": request.project_details,
            "projectType": ProjectType.CUSTOM_FABRICATION.value,
            "material": MaterialType.STEEL.value,
            "quantity": 1,
            "requiredDate": required_date.isoformat(),
        },
        "services": {
            "laserCutting": True,
            "metalBending": False,
            "welding": False,
            "assembly": False,
            "finishing": False,
            "design": False,
            "other": "",
        },
        "files": [_file_entry(p) for p in files],
        "metadata": {
            "source": HERO_SOURCE,
            "submittedAt": datetime.now(timezone.utc).isoformat(),
        },
    }
    if tracking:
        document["tracking"] = dict(tracking)
    return document


async def submit_hero_quote(
    request: HeroQuoteRequest,
    files: Sequence[FilePayload] = (),
    tracking: Mapping[str, Any] | None = None,
    *,
    client: QuoteApiClient | None = None,
) -> QuoteSubmissionResponse:
    """Build the hero submission and post it (multipart when files are attached)."""
    api = client or QuoteApiClient()
    return await api.submit(build_hero_submission(request, files, tracking), files)
