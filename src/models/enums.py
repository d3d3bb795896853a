"""Domain enums used across the quote schemas, the RFQ extractor and the wizard.

All string enums use the str mixin so they serialize to their wire values.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ProjectType(str, Enum):
    """Kind of work requested; drives how sales triages the quote."""

    PROTOTYPE = "prototype"
    SMALL_BATCH = "small-batch"
    LARGE_PRODUCTION = "large-production"
    CUSTOM_FABRICATION = "custom-fabrication"
    REPAIR_MODIFICATION = "repair-modification"
    OTHER = "other"


class MaterialType(str, Enum):
    """Canonical material families offered on the quote form."""

    STEEL = "steel"
    STAINLESS_STEEL = "stainless-steel"
    ALUMINUM = "aluminum"
    COPPER = "copper"
    BRASS = "brass"
    TITANIUM = "titanium"
    OTHER = "other"


class BudgetRange(str, Enum):
    """Budget buckets shared by the form and the RFQ extractor."""

    UNDER_1K = "under-1k"
    FROM_1K_TO_5K = "1k-5k"
    FROM_5K_TO_10K = "5k-10k"
    FROM_10K_TO_25K = "10k-25k"
    FROM_25K_TO_50K = "25k-50k"
    FROM_50K_TO_100K = "50k-100k"
    OVER_100K = "over-100k"


class FileStatus(str, Enum):
    """Client-side upload status of an attached file."""

    UPLOADING = "uploading"
    SUCCESS = "success"
    ERROR = "error"


class ConfidenceTier(str, Enum):
    """How much the RFQ summary trusts a found value."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WizardStep(IntEnum):
    """The four sequential steps of the detailed quote wizard."""

    CONTACT = 1
    PROJECT = 2
    FILES = 3
    SERVICES = 4


# Midpoint estimate per budget bucket, used as the CRM deal amount.
BUDGET_DEAL_AMOUNTS: dict[BudgetRange, int] = {
    BudgetRange.UNDER_1K: 750,
    BudgetRange.FROM_1K_TO_5K: 3000,
    BudgetRange.FROM_5K_TO_10K: 7500,
    BudgetRange.FROM_10K_TO_25K: 17500,
    BudgetRange.FROM_25K_TO_50K: 37500,
    BudgetRange.FROM_50K_TO_100K: 75000,
    BudgetRange.OVER_100K: 150000,
}
