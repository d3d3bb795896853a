"""Tests for per-step and whole-submission validation.

Covers:
- Empty default document fails steps 1, 2 and 4; one service flag fixes step 4
- Field-specific messages keyed by dotted path
- File count, size and extension limits
- Blank optional fields are treated as absent
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from src.schemas.quote import MAX_FILE_SIZE
from src.validation import get_default_values, validate_step, validate_submission


def _future(days: int = 30) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


def _file(name: str = "drawing.pdf", size: int = 1024, index: int = 0) -> dict:
    return {
        "id": f"1700000000000-abc{index:03d}",
        "name": name,
        "size": size,
        "type": "application/pdf",
        "uploadedAt": "2099-01-01T10:00:00+00:00",
        "status": "success",
    }


def valid_submission() -> dict:
    return {
        "contact": {
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "Jane.Doe@Acme.com",
            "phone": "416-555-1234",
            "company": "Acme Corp",
        },
        "project": {
            "projectName": "Bracket run",
            "projectType": "small-batch",
            "material": "aluminum",
            "quantity": 120,
            "requiredDate": _future(),
            "description": "Laser cut and bent mounting brackets",
        },
        "files": [_file()],
        "services": {
            "laserCutting": True,
            "metalBending": True,
            "welding": False,
            "assembly": False,
            "finishing": False,
            "design": False,
        },
    }


# ── Default document ─────────────────────────────────────────────────


class TestDefaultValues:
    def test_contact_step_fails(self):
        result = validate_step(1, get_default_values()["contact"])
        assert result.success is False
        assert result.errors["firstName"] == "First name is required"
        assert result.errors["email"] == "Email is required"

    def test_project_step_fails(self):
        result = validate_step(2, get_default_values()["project"])
        assert result.success is False
        assert result.errors["projectType"] == "Please select a project type"
        assert result.errors["requiredDate"] == "Required date is needed"

    def test_empty_file_list_passes(self):
        assert validate_step(3, get_default_values()["files"]).success is True

    def test_services_step_needs_one_service(self):
        services = get_default_values()["services"]
        result = validate_step(4, services)
        assert result.success is False
        assert result.errors == {"services": "Please select at least one service"}

    @pytest.mark.parametrize(
        "flag",
        ["laserCutting", "metalBending", "welding", "assembly", "finishing", "design"],
    )
    def test_any_one_service_passes(self, flag):
        services = {**get_default_values()["services"], flag: True}
        assert validate_step(4, services).success is True

    def test_other_text_counts_as_service(self):
        services = {**get_default_values()["services"], "other": "Powder coating"}
        assert validate_step(4, services).success is True

    def test_unknown_step_is_valid(self):
        assert validate_step(9, None).success is True

    def test_metadata_carries_source(self):
        metadata = get_default_values(source="landing", referrer="https://acme.com")["metadata"]
        assert metadata["source"] == "landing"
        assert metadata["referrer"] == "https://acme.com"
        assert metadata["submittedAt"]


# ── Contact & project fields ─────────────────────────────────────────


class TestFieldMessages:
    def test_invalid_email(self):
        contact = {**valid_submission()["contact"], "email": "not-an-email"}
        assert validate_step(1, contact).errors == {"email": "Please enter a valid email address"}

    def test_invalid_phone(self):
        contact = {**valid_submission()["contact"], "phone": "12"}
        assert validate_step(1, contact).errors == {"phone": "Please enter a valid phone number"}

    def test_name_characters(self):
        contact = {**valid_submission()["contact"], "firstName": "J4ne"}
        assert validate_step(1, contact).errors == {"firstName": "First name contains invalid characters"}

    def test_past_required_date(self):
        project = {**valid_submission()["project"], "requiredDate": "2001-01-01"}
        assert validate_step(2, project).errors == {"requiredDate": "Date must be today or in the future"}

    def test_today_is_allowed(self):
        project = {**valid_submission()["project"], "requiredDate": date.today().isoformat()}
        assert validate_step(2, project).success is True

    def test_quantity_bounds(self):
        project = valid_submission()["project"]
        assert validate_step(2, {**project, "quantity": 0}).errors == {"quantity": "Quantity must be at least 1"}
        assert validate_step(2, {**project, "quantity": 1_000_000}).errors == {"quantity": "Quantity is too large"}

    def test_short_description(self):
        project = {**valid_submission()["project"], "description": "short"}
        assert validate_step(2, project).errors == {
            "description": "Please provide at least 10 characters of description",
        }

    def test_blank_thickness_and_budget_are_absent(self):
        project = {**valid_submission()["project"], "thickness": "", "budget": ""}
        assert validate_step(2, project).success is True

    def test_bad_thickness(self):
        project = {**valid_submission()["project"], "thickness": "3mm"}
        assert validate_step(2, project).errors == {"thickness": "Please enter a valid thickness"}


# ── Files ────────────────────────────────────────────────────────────


class TestFileLimits:
    def test_eleven_files_fail(self):
        files = [_file(index=i) for i in range(11)]
        result = validate_step(3, files)
        assert result.success is False
        assert result.errors == {"files": "You can upload a maximum of 10 files"}

    def test_ten_files_pass(self):
        assert validate_step(3, [_file(index=i) for i in range(10)]).success is True

    def test_oversize_file_fails(self):
        result = validate_step(3, [_file(size=26 * 1024 * 1024)])
        assert result.errors == {"0.size": "File size must be less than 25MB"}

    def test_exactly_max_size_passes(self):
        assert validate_step(3, [_file(size=MAX_FILE_SIZE)]).success is True

    def test_unsupported_extension_fails(self):
        result = validate_step(3, [_file(name="drawing.xyz")])
        assert result.errors == {"0.name": "File type not supported. Please upload CAD files or PDFs."}

    def test_extension_case_insensitive(self):
        assert validate_step(3, [_file(name="PART.STEP")]).success is True


# ── Whole submission ─────────────────────────────────────────────────


class TestValidateSubmission:
    def test_valid(self):
        result = validate_submission(valid_submission())
        assert result.success is True
        assert result.submission.contact.email == "jane.doe@acme.com"
        assert result.submission.services.selected_labels == ["Laser Cutting", "Metal Bending"]

    def test_missing_email_keyed_by_path(self):
        data = valid_submission()
        del data["contact"]["email"]
        result = validate_submission(data)
        assert result.success is False
        assert result.errors == {"contact.email": "Email is required"}

    def test_missing_section(self):
        data = valid_submission()
        del data["services"]
        assert validate_submission(data).errors == {"services": "Please select at least one service"}

    def test_not_a_mapping(self):
        result = validate_submission(["nope"])
        assert result.success is False
        assert result.errors

    def test_wire_output_uses_aliases(self):
        wire = validate_submission(valid_submission()).submission.to_wire()
        assert wire["contact"]["firstName"] == "Jane"
        assert wire["files"][0]["type"] == "application/pdf"
        assert "jobTitle" not in wire["contact"]
