"""Tests for the quote wizard: reducers, persistence and the store shell.

Covers:
- next() on an invalid step does not advance; previous() at step 1 is a no-op
- goto() forward needs earlier steps valid; backward always allowed
- Reload from storage resumes step, data and validity but not file bytes
- Versioned snapshot blobs (unversioned, newer, corrupt)
- File attach rules and simulated upload
- RFQ pre-fill only fills blank fields
- submit(): failing step short-circuits; success schedules a reset
"""

from __future__ import annotations

import asyncio
import json
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.config import FormSettings
from src.models.enums import FileStatus
from src.schemas.quote import QuoteSubmissionResponse
from src.wizard import state as reducers
from src.wizard.client import FilePayload
from src.wizard.state import NEXT_STEP_ERROR, WizardSnapshot
from src.wizard.storage import InMemoryStorage, JsonFileStorage, StoragePort, dump_snapshot, load_snapshot
from src.wizard.store import FileRejectedError, QuoteFormStore

FORM_SETTINGS = FormSettings(upload_simulation_delay=0, reset_delay=0)
KEY = FORM_SETTINGS.form_storage_key

CONTACT = {
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "jane@acme.com",
    "phone": "416-555-1234",
    "company": "Acme Corp",
}
PROJECT = {
    "projectName": "Bracket run",
    "projectType": "prototype",
    "material": "steel",
    "quantity": 5,
    "requiredDate": (date.today() + timedelta(days=14)).isoformat(),
    "description": "Five welded steel brackets",
}
PDF_FILE = {
    "id": "f1",
    "name": "a.pdf",
    "size": 3,
    "type": "application/pdf",
    "uploadedAt": "2099-01-01T00:00:00+00:00",
    "status": "success",
}


def _store(storage: StoragePort | None = None, api_client=None, **kwargs) -> QuoteFormStore:
    return QuoteFormStore(
        storage if storage is not None else InMemoryStorage(),
        api_client=api_client or AsyncMock(),
        form_settings=FORM_SETTINGS,
        **kwargs,
    )


def _complete(store: QuoteFormStore) -> None:
    store.update_contact(CONTACT)
    store.update_project(PROJECT)
    store.update_services({"welding": True})


# ── Reducers ─────────────────────────────────────────────────────────


class TestNavigationReducers:
    def test_go_next_invalid_does_not_advance(self):
        snapshot = reducers.initial_snapshot()
        updated = reducers.go_next(snapshot)

        assert updated.current_step == 1
        assert updated.has_error is True
        assert updated.error_message == NEXT_STEP_ERROR
        assert updated.step_validation == {1: False}
        assert "firstName" in updated.field_errors

    def test_go_next_valid_advances(self):
        snapshot = reducers.update_section(reducers.initial_snapshot(), "contact", CONTACT)
        updated = reducers.go_next(snapshot)

        assert updated.current_step == 2
        assert updated.step_validation == {1: True}
        assert updated.field_errors == {}

    def test_go_next_clamps_at_last_step(self):
        snapshot = reducers.update_section(
            WizardSnapshot(current_step=4), "services", {"design": True},
        )
        assert reducers.go_next(snapshot).current_step == 4

    def test_go_previous_at_first_step_is_noop(self):
        snapshot = reducers.initial_snapshot()
        assert reducers.go_previous(snapshot) is snapshot

    def test_goto_forward_requires_earlier_steps(self):
        snapshot = WizardSnapshot(step_validation={1: True})
        assert reducers.go_to(snapshot, 3) is snapshot

        snapshot = WizardSnapshot(step_validation={1: True, 2: True})
        assert reducers.go_to(snapshot, 3).current_step == 3

    @pytest.mark.parametrize("start", [2, 3, 4])
    def test_goto_first_step_always_allowed(self, start):
        assert reducers.go_to(WizardSnapshot(current_step=start), 1).current_step == 1

    def test_goto_out_of_range(self):
        snapshot = WizardSnapshot(step_validation={1: True, 2: True, 3: True, 4: True})
        assert reducers.go_to(snapshot, 5) is snapshot
        assert reducers.go_to(snapshot, 0) is snapshot

    def test_check_all_steps_jumps_to_first_failure(self):
        snapshot = reducers.update_section(
            WizardSnapshot(current_step=4), "contact", CONTACT,
        )
        checked, failing = reducers.check_all_steps(snapshot)

        assert failing == 2
        assert checked.current_step == 2
        assert checked.error_message == "Please complete step 2 correctly"
        assert checked.step_validation[1] is True

    def test_reducers_do_not_mutate(self):
        snapshot = reducers.initial_snapshot()
        before = json.dumps(reducers.to_plain(snapshot.form_data), sort_keys=True)
        reducers.update_section(snapshot, "contact", CONTACT)
        reducers.add_file(snapshot, {"id": "1", "name": "a.pdf"})
        assert json.dumps(reducers.to_plain(snapshot.form_data), sort_keys=True) == before

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown form section"):
            reducers.update_section(reducers.initial_snapshot(), "files", {})


# ── Store navigation ─────────────────────────────────────────────────


class TestStoreNavigation:
    def test_next_on_invalid_step(self):
        store = _store()
        assert store.next() is False
        assert store.current_step == 1
        assert store.errors["email"] == "Email is required"

    def test_previous_from_first_step(self):
        store = _store()
        store.previous()
        assert store.current_step == 1

    def test_walk_forward_and_back(self):
        store = _store()
        store.update_contact(CONTACT)
        assert store.next() is True
        store.update_project(PROJECT)
        assert store.next() is True
        assert store.current_step == 3
        assert store.next() is True  # no files is fine
        assert store.current_step == 4

        assert store.goto(1) is True
        assert store.current_step == 1
        assert store.can_proceed_to(4) is True

    def test_goto_refused(self):
        store = _store()
        assert store.goto(3) is False
        assert store.current_step == 1


# ── Persistence ──────────────────────────────────────────────────────


class TestPersistence:
    def test_every_mutation_is_saved(self):
        storage = InMemoryStorage()
        store = _store(storage)
        store.update_contact({"firstName": "Jane"})

        blob = json.loads(storage.get_item(KEY))
        assert blob["version"] == FORM_SETTINGS.form_storage_version
        assert blob["state"]["formData"]["contact"]["firstName"] == "Jane"
        assert blob["state"]["lastSavedAt"]

    def test_reload_resumes_without_file_bytes(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        first = _store(storage)
        first.update_contact(CONTACT)
        first.next()
        first.add_file(PDF_FILE, FilePayload(name="a.pdf", content=b"pdf"))
        assert len(first.file_payloads()) == 1

        second = _store(JsonFileStorage(tmp_path))
        assert second.load() is True
        assert second.current_step == 2
        assert second.form_data["contact"]["email"] == "jane@acme.com"
        assert second.snapshot.step_validation == {1: True}
        assert [f["id"] for f in second.snapshot.files] == ["f1"]
        assert second.file_payloads() == []

    def test_load_with_nothing_saved(self):
        assert _store().load() is False

    def test_corrupt_blob_is_discarded(self):
        storage = InMemoryStorage()
        storage.set_item(KEY, "{not json")
        store = _store(storage)

        assert store.load() is False
        assert KEY not in storage

    def test_newer_version_is_discarded(self):
        blob = json.dumps({"version": FORM_SETTINGS.form_storage_version + 1, "state": {"currentStep": 3}})
        assert load_snapshot(blob, FORM_SETTINGS.form_storage_version) is None

    def test_unversioned_blob_is_migrated(self):
        blob = json.dumps({"currentStep": 2, "formData": {"contact": CONTACT}, "stepValidation": {"1": True}})
        snapshot = load_snapshot(blob, 1)
        assert snapshot.current_step == 2
        assert snapshot.step_validation == {1: True}
        assert snapshot.form_data["services"]["welding"] is False

    def test_out_of_range_step_is_clamped(self):
        blob = dump_snapshot(WizardSnapshot(current_step=9), 1)
        assert load_snapshot(blob, 1).current_step == 4


# ── Files ────────────────────────────────────────────────────────────


class TestFiles:
    @pytest.mark.asyncio()
    async def test_upload_marks_success(self):
        store = _store()
        file = await store.upload_file("part.dxf", b"0123", "application/dxf")

        assert file["status"] == FileStatus.SUCCESS.value
        assert store.snapshot.files[0]["status"] == "success"
        assert store.file_payloads()[0].content == b"0123"

    @pytest.mark.asyncio()
    async def test_unsupported_type_rejected(self):
        store = _store()
        with pytest.raises(FileRejectedError, match="drawing.xyz is not a supported file type"):
            await store.upload_file("drawing.xyz", b"x")
        assert store.snapshot.files == []

    @pytest.mark.asyncio()
    async def test_eleventh_file_rejected(self):
        store = _store()
        for i in range(10):
            await store.upload_file(f"part{i}.pdf", b"x")
        with pytest.raises(FileRejectedError, match="maximum of 10 files"):
            await store.upload_file("part10.pdf", b"x")

    def test_remove_releases_preview(self):
        release = MagicMock()
        store = _store(release_preview=release)
        store.add_file({"id": "f1", "name": "a.png", "url": "blob:preview-1"}, FilePayload("a.png", b"png"))

        store.remove_file("f1")

        release.assert_called_once_with("blob:preview-1")
        assert store.snapshot.files == []
        assert store.file_payloads() == []

    def test_update_file_status_with_error(self):
        store = _store()
        store.add_file({"id": "f1", "name": "a.pdf", "status": "uploading"})
        store.update_file_status("f1", FileStatus.ERROR, "Upload failed")

        file = store.snapshot.files[0]
        assert file["status"] == "error"
        assert file["errorMessage"] == "Upload failed"


# ── RFQ pre-fill ─────────────────────────────────────────────────────


class TestPrefill:
    def test_fills_blank_fields(self):
        store = _store()
        summary = store.prefill_from_rfq(
            "From: john@acme.com\nNeed 250 units stainless steel by January 5 2099. Best regards, John Smith"
        )

        contact = store.form_data["contact"]
        project = store.form_data["project"]
        assert contact["email"] == "john@acme.com"
        assert contact["firstName"] == "John"
        assert contact["lastName"] == "Smith"
        assert project["quantity"] == 250
        assert project["material"] == "stainless-steel"
        assert project["requiredDate"] == "2099-01-05"
        assert any(f.field == "Email" for f in summary.found)

    def test_typed_values_win(self):
        store = _store()
        store.update_contact({"email": "jane@acme.com"})
        store.update_project({"quantity": 40})

        store.prefill_from_rfq("Contact john@acme.com. Need 250 units of brass.")

        assert store.form_data["contact"]["email"] == "jane@acme.com"
        assert store.form_data["project"]["quantity"] == 40
        assert store.form_data["project"]["material"] == "brass"


# ── Submission ───────────────────────────────────────────────────────


class TestSubmit:
    @pytest.mark.asyncio()
    async def test_failing_step_is_not_sent(self):
        api = AsyncMock()
        store = _store(api_client=api)
        store.update_contact(CONTACT)

        response = await store.submit()

        assert response.success is False
        assert response.message == "Please complete step 2 correctly"
        assert store.current_step == 2
        api.submit.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_success_then_reset(self):
        api = AsyncMock()
        api.submit = AsyncMock(return_value=QuoteSubmissionResponse(success=True, quote_id="CMF-ABC-123XYZ"))
        storage = InMemoryStorage()
        store = _store(storage, api_client=api)
        _complete(store)
        store.add_file(PDF_FILE, FilePayload("a.pdf", b"pdf"))

        response = await store.submit({"hutk": "abc"})

        assert response.success is True
        assert store.snapshot.submission_id == "CMF-ABC-123XYZ"
        form_data, payloads, tracking = api.submit.await_args.args
        assert form_data["contact"]["email"] == "jane@acme.com"
        assert [p.name for p in payloads] == ["a.pdf"]
        assert tracking == {"hutk": "abc"}

        await asyncio.sleep(0.05)
        assert store.snapshot.submission_id is None
        assert store.form_data["contact"]["email"] == ""
        assert KEY not in storage

    @pytest.mark.asyncio()
    async def test_failure_keeps_state(self):
        api = AsyncMock()
        api.submit = AsyncMock(return_value=QuoteSubmissionResponse(success=False, message="Validation failed"))
        store = _store(api_client=api)
        _complete(store)

        response = await store.submit()

        assert response.success is False
        assert store.snapshot.has_error is True
        assert store.snapshot.error_message == "Validation failed"
        assert store.snapshot.is_submitting is False
        assert store.form_data["contact"]["email"] == "jane@acme.com"
