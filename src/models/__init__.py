"""Domain enums for the quote intake service."""

from __future__ import annotations

from src.models.enums import (
    BUDGET_DEAL_AMOUNTS,
    BudgetRange,
    ConfidenceTier,
    FileStatus,
    MaterialType,
    ProjectType,
    WizardStep,
)

__all__ = [
    "BUDGET_DEAL_AMOUNTS",
    "BudgetRange",
    "ConfidenceTier",
    "FileStatus",
    "MaterialType",
    "ProjectType",
    "WizardStep",
]
