"""Pydantic schemas for a quote submission, one model per wizard step.

The same rules back the wizard (UX feedback) and the submission endpoint
(trust boundary). Error messages are user-facing and field specific.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Any

from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from src.models.enums import BudgetRange, FileStatus, MaterialType, ProjectType
from src.schemas.base import WireModel

# ── Limits ───────────────────────────────────────────────────────────

MAX_FILE_SIZE = 25 * 1024 * 1024  # 25MB
MAX_FILES = 10
MAX_NAME_LENGTH = 50
MAX_COMPANY_LENGTH = 100
MAX_QUANTITY = 999_999
MAX_TEXT_LENGTH = 2000
MIN_DESCRIPTION_LENGTH = 10
MAX_OTHER_SERVICES_LENGTH = 200

ACCEPTED_FILE_EXTENSIONS: frozenset[str] = frozenset({
    ".pdf",
    ".dwg",
    ".dxf",
    ".step",
    ".stp",
    ".stl",
    ".iges",
    ".igs",
    ".sat",
    ".x_t",
    ".x_b",
    ".png",
    ".jpg",
    ".jpeg",
    ".zip",
    ".rar",
})

_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
_PHONE_RE = re.compile(r"^[+]?[(]?[0-9]{3}[)]?[-\s.]?[0-9]{3}[-\s.]?[0-9]{4,6}$")
_THICKNESS_RE = re.compile(r"^\d+(\.\d{1,2})?$")
_EXTENSION_RE = re.compile(r"\.[^.]+$")

# Messages for absent required fields, keyed by wire name.
REQUIRED_MESSAGES: dict[str, str] = {
    "firstName": "First name is required",
    "lastName": "Last name is required",
    "email": "Email is required",
    "phone": "Phone number is required",
    "company": "Company name is required",
    "projectName": "Project name is required",
    "projectType": "Please select a project type",
    "material": "Please select a material type",
    "quantity": "Quantity must be at least 1",
    "requiredDate": "Required date is needed",
    "description": "Please provide at least 10 characters of description",
    "contact": "Contact information is required",
    "project": "Project details are required",
    "services": "Please select at least one service",
}

SERVICE_LABELS: dict[str, str] = {
    "laser_cutting": "Laser Cutting",
    "metal_bending": "Metal Bending",
    "welding": "Welding",
    "assembly": "Assembly",
    "finishing": "Finishing",
    "design": "Design",
}


def _invalid(message: str) -> PydanticCustomError:
    return PydanticCustomError("invalid_field", message)


def _member_of(enum_cls: type[Enum], value: Any, message: str) -> Any:
    """Accept enum members or their wire values, with a friendly error otherwise."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str) and value in {m.value for m in enum_cls}:
        return value
    raise _invalid(message)


def parse_iso_date(value: str) -> date | None:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a date."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


# ── Step 1: contact ──────────────────────────────────────────────────


class ContactInfo(WireModel):
    """Identity of the requester."""

    first_name: str
    last_name: str
    email: str
    phone: str
    company: str
    job_title: str | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def _check_name(cls, v: str, info: ValidationInfo) -> str:
        label = "First name" if info.field_name == "first_name" else "Last name"
        if not v:
            raise _invalid(f"{label} is required")
        if len(v) > MAX_NAME_LENGTH:
            raise _invalid(f"{label} must be less than 50 characters")
        if not _NAME_RE.match(v):
            raise _invalid(f"{label} contains invalid characters")
        return v

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        if not v:
            raise _invalid("Email is required")
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError:
            raise _invalid("Please enter a valid email address") from None
        return v.lower()

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, v: str) -> str:
        if not v:
            raise _invalid("Phone number is required")
        if not _PHONE_RE.match(v):
            raise _invalid("Please enter a valid phone number")
        return v

    @field_validator("company")
    @classmethod
    def _check_company(cls, v: str) -> str:
        if not v:
            raise _invalid("Company name is required")
        if len(v) > MAX_COMPANY_LENGTH:
            raise _invalid("Company name must be less than 100 characters")
        return v

    @field_validator("job_title")
    @classmethod
    def _check_job_title(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_COMPANY_LENGTH:
            raise _invalid("Job title must be less than 100 characters")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# ── Step 2: project ──────────────────────────────────────────────────


class ProjectDetails(WireModel):
    """The work request."""

    project_name: str
    project_type: ProjectType
    material: MaterialType
    thickness: str | None = None
    quantity: int
    required_date: str
    budget: BudgetRange | None = None
    description: str
    specifications: str | None = None

    @field_validator("project_name")
    @classmethod
    def _check_project_name(cls, v: str) -> str:
        if not v:
            raise _invalid("Project name is required")
        if len(v) > MAX_COMPANY_LENGTH:
            raise _invalid("Project name must be less than 100 characters")
        return v

    @field_validator("project_type", mode="before")
    @classmethod
    def _check_project_type(cls, v: Any) -> Any:
        return _member_of(ProjectType, v, "Please select a project type")

    @field_validator("material", mode="before")
    @classmethod
    def _check_material(cls, v: Any) -> Any:
        return _member_of(MaterialType, v, "Please select a material type")

    @field_validator("budget", mode="before")
    @classmethod
    def _check_budget(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return _member_of(BudgetRange, v, "Please select a budget range")

    @field_validator("thickness")
    @classmethod
    def _check_thickness(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not _THICKNESS_RE.match(v):
            raise _invalid("Please enter a valid thickness")
        return v

    @field_validator("quantity")
    @classmethod
    def _check_quantity(cls, v: int) -> int:
        if v < 1:
            raise _invalid("Quantity must be at least 1")
        if v > MAX_QUANTITY:
            raise _invalid("Quantity is too large")
        return v

    @field_validator("required_date")
    @classmethod
    def _check_required_date(cls, v: str) -> str:
        if not v:
            raise _invalid("Required date is needed")
        parsed = parse_iso_date(v)
        if parsed is None or parsed < date.today():
            raise _invalid("Date must be today or in the future")
        return v

    @field_validator("description")
    @classmethod
    def _check_description(cls, v: str) -> str:
        if len(v) < MIN_DESCRIPTION_LENGTH:
            raise _invalid("Please provide at least 10 characters of description")
        if len(v) > MAX_TEXT_LENGTH:
            raise _invalid("Description must be less than 2000 characters")
        return v

    @field_validator("specifications")
    @classmethod
    def _check_specifications(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_TEXT_LENGTH:
            raise _invalid("Specifications must be less than 2000 characters")
        return v


# ── Step 3: files ────────────────────────────────────────────────────


class UploadedFile(WireModel):
    """Metadata about one attached file; the bytes travel separately."""

    id: str
    name: str
    size: int
    mime_type: str = Field(alias="type")
    url: str | None = None
    preview: str | None = None
    uploaded_at: datetime
    status: FileStatus
    error_message: str | None = None

    @field_validator("name")
    @classmethod
    def _check_extension(cls, v: str) -> str:
        match = _EXTENSION_RE.search(v.lower())
        if match is None or match.group(0) not in ACCEPTED_FILE_EXTENSIONS:
            raise _invalid("File type not supported. Please upload CAD files or PDFs.")
        return v

    @field_validator("size")
    @classmethod
    def _check_size(cls, v: int) -> int:
        if v > MAX_FILE_SIZE:
            raise _invalid("File size must be less than 25MB")
        return v


def _check_file_count(files: list[UploadedFile]) -> list[UploadedFile]:
    if len(files) > MAX_FILES:
        raise _invalid("You can upload a maximum of 10 files")
    return files


FileList = Annotated[list[UploadedFile], AfterValidator(_check_file_count)]


# ── Step 4: services ─────────────────────────────────────────────────


class ServiceSelection(WireModel):
    """Requested services; at least one flag or a free-text ``other``."""

    laser_cutting: bool
    metal_bending: bool
    welding: bool
    assembly: bool
    finishing: bool
    design: bool
    other: str | None = None

    @field_validator("other")
    @classmethod
    def _check_other(cls, v: str | None) -> str | None:
        if v is not None and len(v) > MAX_OTHER_SERVICES_LENGTH:
            raise _invalid("Other services description must be less than 200 characters")
        return v

    @model_validator(mode="after")
    def _require_one_service(self) -> ServiceSelection:
        if not self.selected and not self.other:
            raise _invalid("Please select at least one service")
        return self

    @property
    def selected(self) -> list[str]:
        """Attribute names of the selected service flags, in form order."""
        return [name for name in SERVICE_LABELS if getattr(self, name)]

    @property
    def selected_labels(self) -> list[str]:
        labels = [SERVICE_LABELS[name] for name in self.selected]
        if self.other:
            labels.append(f"Other: {self.other}")
        return labels


# ── Envelope ─────────────────────────────────────────────────────────


class SubmissionMetadata(WireModel):
    """Provenance; string fields only."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", strict=True)

    source: str | None = None
    referrer: str | None = None
    utm_campaign: str | None = None
    utm_medium: str | None = None
    utm_source: str | None = None
    submitted_at: str | None = None
    ip_address: str | None = None


class TrackingContext(WireModel):
    """Page context forwarded to the CRM analytics call."""

    hutk: str | None = None
    page_uri: str | None = None
    page_name: str | None = None


class QuoteSubmission(WireModel):
    """The complete quote request, validated as one document."""

    contact: ContactInfo
    project: ProjectDetails
    files: FileList = Field(default_factory=list)
    services: ServiceSelection
    metadata: SubmissionMetadata | None = None
    tracking: TrackingContext | None = None


class QuoteSubmissionResponse(WireModel):
    """Body returned by the submission endpoint."""

    success: bool
    quote_id: str | None = None
    message: str | None = None
    errors: dict[str, str] | None = None
    hubspot_contact_id: str | None = None
    hubspot_deal_id: str | None = None
    detail: str | None = None
