"""Schemas for RFQ free-text extraction results.

A ParsedRFQData is a best-effort projection used only to pre-fill the wizard;
it is never persisted or submitted as-is.
"""

from __future__ import annotations

from pydantic import Field

from src.models.enums import BudgetRange, ConfidenceTier, MaterialType, ProjectType
from src.schemas.base import WireModel


class ParsedContact(WireModel):
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    company: str | None = None


class ParsedProject(WireModel):
    project_name: str | None = None
    project_type: ProjectType | None = None
    description: str | None = None
    quantity: int | None = None
    material: MaterialType | None = None
    thickness: str | None = None
    required_date: str | None = Field(default=None, description="ISO date, always in the future")
    budget: BudgetRange | None = None


class ParsedMetadata(WireModel):
    has_attachments: bool = False
    urgent_indicators: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ParsedRFQData(WireModel):
    """Extractor output. Sections are None when nothing was found."""

    contact: ParsedContact | None = None
    project: ParsedProject | None = None
    metadata: ParsedMetadata | None = None

    @property
    def is_empty(self) -> bool:
        return self.contact is None and self.project is None and self.metadata is None


class FoundField(WireModel):
    field: str
    value: str
    confidence: ConfidenceTier


class ParseSummary(WireModel):
    """Display-only summary of what the extractor found and missed."""

    found: list[FoundField] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)
    text: str = ""
    cleaned_text: str = ""
