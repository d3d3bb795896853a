"""Wizard state as an immutable snapshot plus pure reducer functions.

Reducers never mutate their input; each returns a new WizardSnapshot (or the
same one when the transition is refused). Persistence, time and side effects
live in QuoteFormStore.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from src.models.enums import FileStatus, WizardStep
from src.schemas.rfq import ParsedRFQData
from src.validation import STEP_KEYS, get_default_values, validate_step

TOTAL_STEPS = len(WizardStep)
NEXT_STEP_ERROR = "Please fix the errors before proceeding"
SECTIONS = ("contact", "project", "services", "metadata")


@dataclass(frozen=True)
class WizardSnapshot:
    """Everything the wizard knows, in wire-shaped form data."""

    current_step: int = WizardStep.CONTACT
    form_data: Mapping[str, Any] = field(default_factory=get_default_values)
    step_validation: Mapping[int, bool] = field(default_factory=dict)
    field_errors: Mapping[str, str] = field(default_factory=dict)
    last_saved_at: str | None = None
    is_submitting: bool = False
    has_error: bool = False
    error_message: str | None = None
    submission_id: str | None = None

    @property
    def is_submitted(self) -> bool:
        return self.submission_id is not None

    @property
    def files(self) -> list[dict[str, Any]]:
        return list(self.form_data.get("files") or [])

    def step_data(self, step: int) -> Any:
        """The sub-document validated by a given step."""
        return self.form_data.get(STEP_KEYS[WizardStep(step)])

    def to_persisted(self) -> dict[str, Any]:
        """The durable subset: step, data, save time and step validity."""
        return {
            "currentStep": int(self.current_step),
            "formData": to_plain(self.form_data),
            "lastSavedAt": self.last_saved_at,
            "stepValidation": {str(step): valid for step, valid in self.step_validation.items()},
        }

    @classmethod
    def from_persisted(cls, state: Mapping[str, Any]) -> WizardSnapshot:
        step = int(state.get("currentStep", WizardStep.CONTACT))
        form_data = dict(get_default_values())
        form_data.update(state.get("formData") or {})
        return cls(
            current_step=min(max(step, WizardStep.CONTACT), TOTAL_STEPS),
            form_data=form_data,
            step_validation={int(k): bool(v) for k, v in (state.get("stepValidation") or {}).items()},
            last_saved_at=state.get("lastSavedAt"),
        )


def to_plain(value: Any) -> Any:
    """Deep-copy mappings and sequences into plain dicts and lists."""
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def initial_snapshot(source: str = "", referrer: str = "") -> WizardSnapshot:
    return WizardSnapshot(form_data=get_default_values(source=source, referrer=referrer))


# ── Navigation ───────────────────────────────────────────────────────


def mark_step(snapshot: WizardSnapshot, step: int, is_valid: bool) -> WizardSnapshot:
    return replace(snapshot, step_validation={**snapshot.step_validation, step: is_valid})


def can_proceed_to(snapshot: WizardSnapshot, target: int) -> bool:
    """Backward moves are always allowed; forward ones need every earlier step marked valid."""
    if target < snapshot.current_step:
        return True
    return all(snapshot.step_validation.get(step, False) for step in range(1, target))


def go_to(snapshot: WizardSnapshot, step: int) -> WizardSnapshot:
    if not 1 <= step <= TOTAL_STEPS or not can_proceed_to(snapshot, step):
        return snapshot
    return replace(snapshot, current_step=step, field_errors={}, has_error=False, error_message=None)


def go_next(snapshot: WizardSnapshot) -> WizardSnapshot:
    """Validate the current step and advance if it passes (clamped at the last step)."""
    step = snapshot.current_step
    result = validate_step(step, snapshot.step_data(step))
    if not result.success:
        return replace(
            mark_step(snapshot, step, False),
            field_errors=result.errors,
            has_error=True,
            error_message=NEXT_STEP_ERROR,
        )
    return replace(
        mark_step(snapshot, step, True),
        current_step=min(step + 1, TOTAL_STEPS),
        field_errors={},
        has_error=False,
        error_message=None,
    )


def go_previous(snapshot: WizardSnapshot) -> WizardSnapshot:
    if snapshot.current_step <= WizardStep.CONTACT:
        return snapshot
    return replace(snapshot, current_step=snapshot.current_step - 1, field_errors={})


def check_all_steps(snapshot: WizardSnapshot) -> tuple[WizardSnapshot, int | None]:
    """Re-validate every step. On failure, jump to the first failing one.

    Returns the new snapshot and the failing step number (None when all pass).
    """
    marked = snapshot
    for step in WizardStep:
        result = validate_step(step, snapshot.step_data(step))
        marked = mark_step(marked, step, result.success)
        if not result.success:
            return (
                replace(
                    marked,
                    current_step=int(step),
                    field_errors=result.errors,
                    has_error=True,
                    error_message=f"Please complete step {int(step)} correctly",
                ),
                int(step),
            )
    return replace(marked, field_errors={}, has_error=False, error_message=None), None


# ── Data updates ─────────────────────────────────────────────────────


def update_section(snapshot: WizardSnapshot, section: str, values: Mapping[str, Any]) -> WizardSnapshot:
    """Merge field values into one section of the form data."""
    if section not in SECTIONS:
        msg = f"Unknown form section: {section}"
        raise ValueError(msg)
    current = dict(snapshot.form_data.get(section) or {})
    current.update(values)
    return replace(snapshot, form_data={**snapshot.form_data, section: current})


def _with_files(snapshot: WizardSnapshot, files: list[dict[str, Any]]) -> WizardSnapshot:
    return replace(snapshot, form_data={**snapshot.form_data, "files": files})


def add_file(snapshot: WizardSnapshot, file: Mapping[str, Any]) -> WizardSnapshot:
    return _with_files(snapshot, [*snapshot.files, dict(file)])


def remove_file(snapshot: WizardSnapshot, file_id: str) -> WizardSnapshot:
    return _with_files(snapshot, [f for f in snapshot.files if f.get("id") != file_id])


def update_file_status(
    snapshot: WizardSnapshot,
    file_id: str,
    status: FileStatus,
    error_message: str | None = None,
) -> WizardSnapshot:
    files = []
    for f in snapshot.files:
        if f.get("id") == file_id:
            f = {**f, "status": FileStatus(status).value}
            if error_message:
                f["errorMessage"] = error_message
            else:
                f.pop("errorMessage", None)
        files.append(f)
    return _with_files(snapshot, files)


def clear_files(snapshot: WizardSnapshot) -> WizardSnapshot:
    return _with_files(snapshot, [])


# ── Submission ───────────────────────────────────────────────────────


def set_error(snapshot: WizardSnapshot, message: str | None) -> WizardSnapshot:
    return replace(snapshot, has_error=message is not None, error_message=message)


def begin_submit(snapshot: WizardSnapshot) -> WizardSnapshot:
    return replace(snapshot, is_submitting=True, has_error=False, error_message=None)


def submit_succeeded(snapshot: WizardSnapshot, quote_id: str) -> WizardSnapshot:
    return replace(snapshot, is_submitting=False, submission_id=quote_id)


def submit_failed(snapshot: WizardSnapshot, message: str) -> WizardSnapshot:
    return replace(snapshot, is_submitting=False, has_error=True, error_message=message)


# ── RFQ pre-fill ─────────────────────────────────────────────────────


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _fill_blanks(current: Mapping[str, Any], proposed: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(current)
    for key, value in proposed.items():
        if value is not None and _is_blank(merged.get(key)):
            merged[key] = value
    return merged


def apply_parsed_rfq(snapshot: WizardSnapshot, parsed: ParsedRFQData) -> WizardSnapshot:
    """Pre-fill blank contact/project fields from extractor output.

    Values the user already typed are never overwritten. The default
    quantity of 1 counts as blank.
    """
    form_data = dict(snapshot.form_data)

    if parsed.contact is not None:
        contact = parsed.contact
        first_name = last_name = None
        if contact.name:
            first_name, _, last_name = contact.name.partition(" ")
        form_data["contact"] = _fill_blanks(
            form_data.get("contact") or {},
            {
                "firstName": first_name,
                "lastName": last_name or None,
                "email": contact.email,
                "phone": contact.phone,
                "company": contact.company,
            },
        )

    if parsed.project is not None:
        project = parsed.project.model_dump(mode="json", by_alias=True, exclude_none=True)
        current = dict(form_data.get("project") or {})
        if "quantity" in project and current.get("quantity") in (None, "", 1):
            current["quantity"] = project.pop("quantity")
        form_data["project"] = _fill_blanks(current, project)

    return replace(snapshot, form_data=form_data)
