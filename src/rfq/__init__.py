"""RFQ free-text extraction."""

from __future__ import annotations

from src.rfq.cleaning import NormalizedText, clean_text, normalize
from src.rfq.parser import bucket_budget, generate_parse_summary, parse_date_candidate, parse_rfq_text
from src.rfq.rules import RULES, ExtractionRule, RuleName

__all__ = [
    "RULES",
    "ExtractionRule",
    "NormalizedText",
    "RuleName",
    "bucket_budget",
    "clean_text",
    "generate_parse_summary",
    "normalize",
    "parse_date_candidate",
    "parse_rfq_text",
]
