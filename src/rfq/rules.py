"""Independent extraction rules for RFQ text.

Each rule is a compiled pattern plus an optional processor and returns its
candidates in order of appearance, de-duplicated. Rules never look at each
other's output; the parser decides which candidate wins.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from src.models.enums import MaterialType, ProjectType


class RuleName(str, Enum):
    EMAIL = "email"
    PHONE = "phone"
    NAME = "name"
    COMPANY = "company"
    QUANTITY = "quantity"
    MATERIAL = "material"
    THICKNESS = "thickness"
    DATE = "date"
    BUDGET = "budget"
    PROJECT_TYPE = "project_type"
    PROJECT_NAME = "project_name"
    DESCRIPTION = "description"
    URGENCY = "urgency"
    ATTACHMENT = "attachment"


class TextScope(str, Enum):
    """Which view of the normalized text a rule reads."""

    CONTACT = "contact"  # headers + body + signature
    BODY = "body"


# ── Synonym tables ───────────────────────────────────────────────────

MATERIAL_SYNONYMS: dict[str, MaterialType] = {
    "steel": MaterialType.STEEL,
    "carbon steel": MaterialType.STEEL,
    "mild steel": MaterialType.STEEL,
    "stainless": MaterialType.STAINLESS_STEEL,
    "stainless steel": MaterialType.STAINLESS_STEEL,
    "ss": MaterialType.STAINLESS_STEEL,
    "aluminum": MaterialType.ALUMINUM,
    "aluminium": MaterialType.ALUMINUM,
    "al": MaterialType.ALUMINUM,
    "copper": MaterialType.COPPER,
    "cu": MaterialType.COPPER,
    "brass": MaterialType.BRASS,
    "titanium": MaterialType.TITANIUM,
    "ti": MaterialType.TITANIUM,
}

PROJECT_TYPE_SYNONYMS: dict[str, ProjectType] = {
    "prototype": ProjectType.PROTOTYPE,
    "prototypes": ProjectType.PROTOTYPE,
    "prototyping": ProjectType.PROTOTYPE,
    "batch": ProjectType.SMALL_BATCH,
    "small batch": ProjectType.SMALL_BATCH,
    "production": ProjectType.LARGE_PRODUCTION,
    "mass production": ProjectType.LARGE_PRODUCTION,
    "custom": ProjectType.CUSTOM_FABRICATION,
    "fabrication": ProjectType.CUSTOM_FABRICATION,
    "repair": ProjectType.REPAIR_MODIFICATION,
    "modification": ProjectType.REPAIR_MODIFICATION,
}

_BUDGET_MULTIPLIERS: dict[str, int] = {"k": 1_000, "thousand": 1_000, "million": 1_000_000}

MAX_PARSED_QUANTITY = 1_000_000
_MIN_NAME_LENGTH = 2
_MAX_NAME_LENGTH = 49

_SPACES_RE = re.compile(r"\s+")


# ── Rule type ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ExtractionRule:
    """A single pattern-based extraction pass."""

    name: RuleName
    pattern: re.Pattern[str]
    scope: TextScope = TextScope.BODY
    processor: Callable[[re.Match[str]], str | None] | None = None

    def candidates(self, text: str) -> list[str]:
        """All processed matches in order, duplicates and blanks dropped."""
        found: list[str] = []
        for match in self.pattern.finditer(text):
            if self.processor is not None:
                value = self.processor(match)
            else:
                value = match.group(1) if match.re.groups else match.group(0)
            if value and value.strip():
                found.append(value.strip())
        return list(dict.fromkeys(found))


# ── Processors ───────────────────────────────────────────────────────


def _whole(match: re.Match[str]) -> str:
    return match.group(0)


def _name(match: re.Match[str]) -> str | None:
    name = match.group("name").strip()
    if _MIN_NAME_LENGTH <= len(name) <= _MAX_NAME_LENGTH:
        return name
    return None


def _quantity(match: re.Match[str]) -> str | None:
    raw = match.group("qty") or match.group("count")
    qty = int(raw.replace(",", ""))
    if 0 < qty < MAX_PARSED_QUANTITY:
        return str(qty)
    return None


def _material(match: re.Match[str]) -> str | None:
    raw = match.group("abbr") or match.group("word") or match.group("upper")
    material = MATERIAL_SYNONYMS.get(_SPACES_RE.sub(" ", raw.lower()))
    return material.value if material else None


def _project_type(match: re.Match[str]) -> str | None:
    project_type = PROJECT_TYPE_SYNONYMS.get(_SPACES_RE.sub(" ", match.group(0).lower()))
    return project_type.value if project_type else None


def _budget(match: re.Match[str]) -> str:
    amount = float(match.group("amount").replace(",", ""))
    suffix = (match.group("suffix") or "").lower()
    amount *= _BUDGET_MULTIPLIERS.get(suffix, 1)
    return f"{amount:.2f}"


def _lower(match: re.Match[str]) -> str:
    return match.group(0).lower()


# ── Rules, in evaluation order ───────────────────────────────────────

EMAIL_RULE = ExtractionRule(
    name=RuleName.EMAIL,
    pattern=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    scope=TextScope.CONTACT,
    processor=_whole,
)

PHONE_RULE = ExtractionRule(
    name=RuleName.PHONE,
    pattern=re.compile(
        r"(?<!\w)(?:\+?1[-.\s]?)?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}"
        r"(?:\s?(?:ext|x|extension)\.?\s?\d+)?(?!\d)",
        re.IGNORECASE,
    ),
    scope=TextScope.CONTACT,
    processor=_whole,
)

NAME_RULE = ExtractionRule(
    name=RuleName.NAME,
    pattern=re.compile(
        r"\b(?i:from|name|contact|regards?)[ \t]*[:,]?\s*"
        r"(?P<name>[A-Z][a-z]+(?:[ \t]+[A-Z][a-z]+)*)"
    ),
    scope=TextScope.CONTACT,
    processor=_name,
)

COMPANY_RULE = ExtractionRule(
    name=RuleName.COMPANY,
    pattern=re.compile(
        r"\b(?i:company|organi[sz]ation|firm)[ \t]*:[ \t]*"
        r"([A-Z][^,;\n]{1,99}?)(?=[ \t]*(?:[,;\n]|\.\s|\.?$))",
        re.MULTILINE,
    ),
    scope=TextScope.CONTACT,
)

QUANTITY_RULE = ExtractionRule(
    name=RuleName.QUANTITY,
    pattern=re.compile(
        r"(?:\bquantity\s*(?:of|:)?\s*|\bqty\.?\s*:?\s*|\bneed\s+|\brequire\s+|\border\s+(?:of\s+)?)"
        r"(?P<qty>\d{1,3}(?:,\d{3})+|\d+)(?:\s*(?:units?|pieces?|pcs|parts?|items?)\b)?"
        r"|\b(?P<count>\d{1,3}(?:,\d{3})+|\d+)\s*(?:units?|pieces?|pcs|parts?|items?)\b",
        re.IGNORECASE,
    ),
    processor=_quantity,
)

MATERIAL_RULE = ExtractionRule(
    name=RuleName.MATERIAL,
    pattern=re.compile(
        r"\bmaterial\s*:?\s*(?P<abbr>ss|al|cu|ti)\b"
        r"|\b(?P<word>carbon\s+steel|mild\s+steel|stainless\s+steel|stainless|steel"
        r"|aluminium|aluminum|copper|brass|titanium)\b"
        r"|\b(?P<upper>(?-i:SS))\b",
        re.IGNORECASE,
    ),
    processor=_material,
)

THICKNESS_RULE = ExtractionRule(
    name=RuleName.THICKNESS,
    pattern=re.compile(
        r"(?<![\d.])(\d+(?:\.\d+)?)\s*(?:mm\b|millimet(?:er|re)s?\b|inch(?:es)?\b|\"|gauge\b|ga\b)",
        re.IGNORECASE,
    ),
)

DATE_RULE = ExtractionRule(
    name=RuleName.DATE,
    pattern=re.compile(
        r"(?:\bby\s+|\bdue\s+|\bdeadline\s*:?\s*|\brequired\s+by\s+|\bdelivery\s*:?\s*)"
        r"(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}[/.-]\d{1,2}[/.-]\d{1,2}"
        r"|(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{2,4})",
        re.IGNORECASE,
    ),
)

BUDGET_RULE = ExtractionRule(
    name=RuleName.BUDGET,
    pattern=re.compile(
        r"(?:\bbudget\s*(?:is|of|:)?\s*(?:around|about|approx\.?|~)?\s*\$?|\bcost\s*:?\s*\$?|\$)\s*"
        r"(?P<amount>\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)"
        r"(?:\s*(?P<suffix>k|thousand|million)\b)?",
        re.IGNORECASE,
    ),
    processor=_budget,
)

PROJECT_TYPE_RULE = ExtractionRule(
    name=RuleName.PROJECT_TYPE,
    pattern=re.compile(
        r"\b(?:prototyp(?:es?|ing)|small\s+batch|batch|mass\s+production|production"
        r"|custom|fabrication|repair|modification)\b",
        re.IGNORECASE,
    ),
    processor=_project_type,
)

PROJECT_NAME_RULE = ExtractionRule(
    name=RuleName.PROJECT_NAME,
    pattern=re.compile(
        r"\b(?:project\s+name|part\s+name|project)\s*:\s*([^.,;\n]{2,100}?)(?=\s*(?:[.,;\n]|$))",
        re.IGNORECASE,
    ),
)

DESCRIPTION_RULE = ExtractionRule(
    name=RuleName.DESCRIPTION,
    pattern=re.compile(
        r"\b(?:description|scope|details)\s*:\s*(.{10,}?)(?=[.!?](?:\s|$)|$)",
        re.IGNORECASE,
    ),
)

URGENCY_RULE = ExtractionRule(
    name=RuleName.URGENCY,
    pattern=re.compile(r"\b(?:urgent|asap|rush|emergency|immediate|priority|critical)\b", re.IGNORECASE),
    processor=_lower,
)

ATTACHMENT_RULE = ExtractionRule(
    name=RuleName.ATTACHMENT,
    pattern=re.compile(
        r"\b(?:attached|attachments?|files?|drawings?|cad|pdf|dwg|step|iges)\b",
        re.IGNORECASE,
    ),
    processor=_lower,
)

RULES: tuple[ExtractionRule, ...] = (
    EMAIL_RULE,
    PHONE_RULE,
    NAME_RULE,
    COMPANY_RULE,
    QUANTITY_RULE,
    MATERIAL_RULE,
    THICKNESS_RULE,
    DATE_RULE,
    BUDGET_RULE,
    PROJECT_TYPE_RULE,
    PROJECT_NAME_RULE,
    DESCRIPTION_RULE,
    URGENCY_RULE,
    ATTACHMENT_RULE,
)
