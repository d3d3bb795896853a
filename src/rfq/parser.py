"""RFQ free-text parser: turns a pasted email into a best-guess pre-fill.

Normalizes once, runs every rule independently, then picks the first
candidate per field. Best-effort only: nothing here is authoritative and
the wizard re-validates every value it pre-fills.
"""

from __future__ import annotations

import logging
import re
from datetime import date

from src.models.enums import BudgetRange, ConfidenceTier, MaterialType, ProjectType
from src.rfq.cleaning import NormalizedText, clean_text, normalize
from src.rfq.rules import RULES, RuleName, TextScope
from src.schemas.rfq import (
    FoundField,
    ParsedContact,
    ParsedMetadata,
    ParsedProject,
    ParsedRFQData,
    ParseSummary,
)

logger = logging.getLogger(__name__)

Candidates = dict[RuleName, list[str]]

# Upper bounds (exclusive) for each budget bucket; anything above is over-100k.
_BUDGET_THRESHOLDS: tuple[tuple[int, BudgetRange], ...] = (
    (1_000, BudgetRange.UNDER_1K),
    (5_000, BudgetRange.FROM_1K_TO_5K),
    (10_000, BudgetRange.FROM_5K_TO_10K),
    (25_000, BudgetRange.FROM_10K_TO_25K),
    (50_000, BudgetRange.FROM_25K_TO_50K),
    (100_000, BudgetRange.FROM_50K_TO_100K),
)

# Signal weights for the confidence score
_CONFIDENCE_WEIGHTS: dict[RuleName, float] = {
    RuleName.EMAIL: 0.2,
    RuleName.QUANTITY: 0.2,
    RuleName.MATERIAL: 0.2,
    RuleName.DATE: 0.15,
    RuleName.PHONE: 0.1,
}
_LENGTH_WEIGHT = 0.15
_LENGTH_SIGNAL_CHARS = 50

_MIN_SENTENCE_CHARS = 20
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_HEADER_LABEL_RE = re.compile(r"^(?:from|to|subject|date)\s*:", re.IGNORECASE)

_MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}
_NAMED_DATE_RE = re.compile(r"^([a-z]+)\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{2,4})$", re.IGNORECASE)
_NUMERIC_DATE_RE = re.compile(r"^(\d{1,4})[/.-](\d{1,2})[/.-](\d{1,4})$")


# ── Helpers ──────────────────────────────────────────────────────────


def bucket_budget(amount: float) -> BudgetRange:
    """Map a dollar amount onto the form's budget buckets."""
    for limit, bucket in _BUDGET_THRESHOLDS:
        if amount < limit:
            return bucket
    return BudgetRange.OVER_100K


def _expand_year(raw: str) -> int:
    year = int(raw)
    return 2000 + year if len(raw) <= 2 else year


def parse_date_candidate(raw: str) -> date | None:
    """Parse month-name, US numeric (M/D/Y) or ISO (Y-M-D) dates."""
    raw = raw.strip()
    try:
        named = _NAMED_DATE_RE.match(raw)
        if named:
            month = _MONTHS.get(named.group(1)[:3].lower())
            if month is None:
                return None
            return date(_expand_year(named.group(3)), month, int(named.group(2)))

        numeric = _NUMERIC_DATE_RE.match(raw)
        if numeric is None:
            return None
        first, second, third = numeric.groups()
        if len(first) == 4:
            return date(int(first), int(second), int(third))
        return date(_expand_year(third), int(first), int(second))
    except ValueError:
        return None


def _first(candidates: Candidates, name: RuleName) -> str | None:
    values = candidates.get(name) or []
    return values[0] if values else None


def run_rules(normalized: NormalizedText) -> Candidates:
    """Apply every rule to its view of the text. A failing rule yields no candidates."""
    views = {TextScope.CONTACT: normalized.contact_text, TextScope.BODY: normalized.body}
    candidates: Candidates = {}
    for rule in RULES:
        try:
            candidates[rule.name] = rule.candidates(views[rule.scope])
        except Exception:
            logger.exception("RFQ rule %s failed", rule.name.value)
            candidates[rule.name] = []
    return candidates


# ── Section builders ─────────────────────────────────────────────────


def _build_contact(candidates: Candidates) -> ParsedContact | None:
    emails = candidates.get(RuleName.EMAIL) or []
    email = next((e for e in emails if "noreply" not in e.lower()), emails[0] if emails else None)

    contact = ParsedContact(
        email=email,
        phone=_first(candidates, RuleName.PHONE),
        name=_first(candidates, RuleName.NAME),
        company=_first(candidates, RuleName.COMPANY),
    )
    if contact.model_dump(exclude_none=True):
        return contact
    return None


def _fallback_description(body: str) -> str | None:
    if len(body) <= _MIN_SENTENCE_CHARS:
        return None
    for sentence in _SENTENCE_SPLIT_RE.split(body):
        sentence = sentence.strip()
        if len(sentence) > _MIN_SENTENCE_CHARS and "@" not in sentence and not _HEADER_LABEL_RE.match(sentence):
            return sentence
    return None


def _fallback_project_name(material: MaterialType, project_type: ProjectType | None) -> str:
    kind = project_type.value.replace("-", " ") if project_type else "fabrication"
    return f"Custom {material.value.replace('-', ' ')} {kind}".title()


def _build_project(candidates: Candidates, body: str) -> ParsedProject | None:
    project = ParsedProject()

    quantity = _first(candidates, RuleName.QUANTITY)
    if quantity is not None:
        project.quantity = int(quantity)

    material = _first(candidates, RuleName.MATERIAL)
    if material is not None:
        project.material = MaterialType(material)

    project.thickness = _first(candidates, RuleName.THICKNESS)

    # Only the first date-like match counts; a past date is dropped, not replaced.
    raw_date = _first(candidates, RuleName.DATE)
    if raw_date is not None:
        parsed_date = parse_date_candidate(raw_date)
        if parsed_date is not None and parsed_date > date.today():
            project.required_date = parsed_date.isoformat()

    budget = _first(candidates, RuleName.BUDGET)
    if budget is not None:
        project.budget = bucket_budget(float(budget))

    project_type = _first(candidates, RuleName.PROJECT_TYPE)
    if project_type is not None:
        project.project_type = ProjectType(project_type)

    project.project_name = _first(candidates, RuleName.PROJECT_NAME)
    if project.project_name is None and project.material is not None:
        project.project_name = _fallback_project_name(project.material, project.project_type)

    project.description = _first(candidates, RuleName.DESCRIPTION) or _fallback_description(body)

    if project.model_dump(exclude_none=True):
        return project
    return None


def _build_metadata(candidates: Candidates, body: str) -> ParsedMetadata:
    score = sum(weight for name, weight in _CONFIDENCE_WEIGHTS.items() if candidates.get(name))
    if len(body) > _LENGTH_SIGNAL_CHARS:
        score += _LENGTH_WEIGHT

    return ParsedMetadata(
        has_attachments=bool(candidates.get(RuleName.ATTACHMENT)),
        urgent_indicators=list(candidates.get(RuleName.URGENCY) or []),
        confidence=round(min(1.0, score), 2),
    )


# ── Public API ───────────────────────────────────────────────────────


def parse_rfq_text(text: str) -> ParsedRFQData:
    """Extract a best-guess contact/project pre-fill from pasted RFQ text.

    Never raises. Empty or whitespace-only input returns an empty result.
    """
    if not text or not text.strip():
        return ParsedRFQData()

    try:
        normalized = normalize(text)
        candidates = run_rules(normalized)
        result = ParsedRFQData(
            contact=_build_contact(candidates),
            project=_build_project(candidates, normalized.body),
            metadata=_build_metadata(candidates, normalized.body),
        )
    except Exception:
        logger.exception("RFQ parsing failed; returning empty result")
        return ParsedRFQData()

    logger.debug(
        "Parsed RFQ text (%d chars): confidence=%.2f",
        len(text),
        result.metadata.confidence if result.metadata else 0.0,
    )
    return result


def generate_parse_summary(parsed: ParsedRFQData, original_text: str) -> ParseSummary:
    """List found fields with a confidence tier, and expected fields that are missing."""
    found: list[FoundField] = []
    missing: list[str] = []
    contact = parsed.contact or ParsedContact()
    project = parsed.project or ParsedProject()

    if contact.email:
        found.append(FoundField(field="Email", value=contact.email, confidence=ConfidenceTier.HIGH))
    else:
        missing.append("Email address")

    if contact.name:
        found.append(FoundField(field="Name", value=contact.name, confidence=ConfidenceTier.MEDIUM))
    else:
        missing.append("Contact name")

    if contact.company:
        found.append(FoundField(field="Company", value=contact.company, confidence=ConfidenceTier.MEDIUM))

    if contact.phone:
        found.append(FoundField(field="Phone", value=contact.phone, confidence=ConfidenceTier.MEDIUM))

    if project.quantity:
        found.append(FoundField(field="Quantity", value=str(project.quantity), confidence=ConfidenceTier.HIGH))
    else:
        missing.append("Quantity")

    if project.material:
        found.append(FoundField(field="Material", value=project.material.value, confidence=ConfidenceTier.HIGH))
    else:
        missing.append("Material type")

    if project.thickness:
        found.append(FoundField(field="Thickness", value=project.thickness, confidence=ConfidenceTier.MEDIUM))

    if project.required_date:
        found.append(
            FoundField(field="Required Date", value=project.required_date, confidence=ConfidenceTier.MEDIUM)
        )
    else:
        missing.append("Required date")

    if project.budget:
        found.append(FoundField(field="Budget", value=project.budget.value, confidence=ConfidenceTier.LOW))

    return ParseSummary(
        found=found,
        missing=missing,
        text=original_text,
        cleaned_text=clean_text(original_text),
    )
