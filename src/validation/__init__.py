"""Quote form validation shared by the wizard and the submission endpoint."""

from __future__ import annotations

from src.validation.validator import (
    STEP_KEYS,
    StepValidation,
    SubmissionValidation,
    format_errors,
    get_default_values,
    validate_step,
    validate_submission,
)

__all__ = [
    "STEP_KEYS",
    "StepValidation",
    "SubmissionValidation",
    "format_errors",
    "get_default_values",
    "validate_step",
    "validate_submission",
]
