"""Per-step and whole-submission validation for the quote wizard.

Synchronous and side-effect free. Used by the wizard store to gate step
transitions and by the submission service as the trust boundary. Never
raises: failures come back as a dotted-path → message mapping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import TypeAdapter, ValidationError

from src.models.enums import WizardStep
from src.schemas.quote import (
    REQUIRED_MESSAGES,
    ContactInfo,
    FileList,
    ProjectDetails,
    QuoteSubmission,
    ServiceSelection,
)

logger = logging.getLogger(__name__)

GENERAL_ERROR = {"general": "Validation failed"}

# Step → (root name used for step-level errors, adapter)
_STEP_ADAPTERS: dict[WizardStep, tuple[str, TypeAdapter[Any]]] = {
    WizardStep.CONTACT: ("contact", TypeAdapter(ContactInfo)),
    WizardStep.PROJECT: ("project", TypeAdapter(ProjectDetails)),
    WizardStep.FILES: ("files", TypeAdapter(FileList)),
    WizardStep.SERVICES: ("services", TypeAdapter(ServiceSelection)),
}

STEP_KEYS: dict[WizardStep, str] = {step: root for step, (root, _) in _STEP_ADAPTERS.items()}


@dataclass
class StepValidation:
    """Outcome of validating one wizard step."""

    success: bool
    errors: dict[str, str] = field(default_factory=dict)


@dataclass
class SubmissionValidation:
    """Outcome of validating a complete submission."""

    success: bool
    errors: dict[str, str] = field(default_factory=dict)
    submission: QuoteSubmission | None = None


def format_errors(exc: ValidationError, root: str | None = None) -> dict[str, str]:
    """Flatten pydantic errors into {dotted.path: message}.

    Errors raised on the object itself (empty location) are keyed by ``root``.
    The first message per path wins.
    """
    errors: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(part) for part in err["loc"]]
        path = ".".join(loc) if loc else (root or "general")
        message = err["msg"]
        if err["type"] == "missing" and loc:
            message = REQUIRED_MESSAGES.get(loc[-1], message)
        errors.setdefault(path, message)
    return errors


def validate_step(step: int, data: Any) -> StepValidation:
    """Validate the sub-document for one wizard step (1–4).

    Unknown step numbers are treated as valid.
    """
    try:
        wizard_step = WizardStep(step)
    except ValueError:
        return StepValidation(success=True)

    root, adapter = _STEP_ADAPTERS[wizard_step]
    try:
        adapter.validate_python(data)
    except ValidationError as exc:
        return StepValidation(success=False, errors=format_errors(exc, root=root))
    except Exception:
        logger.exception("Unexpected error validating step %d", step)
        return StepValidation(success=False, errors=dict(GENERAL_ERROR))
    return StepValidation(success=True)


def validate_submission(data: Any) -> SubmissionValidation:
    """Validate a complete submission document (all four steps + metadata)."""
    try:
        submission = QuoteSubmission.model_validate(data)
    except ValidationError as exc:
        return SubmissionValidation(success=False, errors=format_errors(exc))
    except Exception:
        logger.exception("Unexpected error validating submission")
        return SubmissionValidation(success=False, errors=dict(GENERAL_ERROR))
    return SubmissionValidation(success=True, submission=submission)


def get_default_values(source: str = "", referrer: str = "") -> dict[str, Any]:
    """The empty wizard document, in wire shape."""
    return {
        "contact": {
            "firstName": "",
            "lastName": "",
            "email": "",
            "phone": "",
            "company": "",
            "jobTitle": "",
        },
        "project": {
            "projectName": "",
            "projectType": None,
            "material": None,
            "thickness": "",
            "quantity": 1,
            "requiredDate": "",
            "budget": None,
            "description": "",
            "specifications": "",
        },
        "files": [],
        "services": {
            "laserCutting": False,
            "metalBending": False,
            "welding": False,
            "assembly": False,
            "finishing": False,
            "design": False,
            "other": "",
        },
        "metadata": {
            "source": source,
            "referrer": referrer,
            "submittedAt": datetime.now(timezone.utc).isoformat(),
        },
    }
