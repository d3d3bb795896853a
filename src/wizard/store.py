"""QuoteFormStore: the stateful shell around the wizard reducers.

Holds the current WizardSnapshot, persists it through a StoragePort after
every mutation, keeps file bytes in memory only, and drives submission
through QuoteApiClient. One store per wizard instance; nothing global.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
import time
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from src.config import FormSettings, settings
from src.events.bus import emit
from src.models.enums import FileStatus
from src.rfq import generate_parse_summary, parse_rfq_text
from src.schemas.events import EventType, SystemEvent
from src.schemas.quote import ACCEPTED_FILE_EXTENSIONS, MAX_FILE_SIZE, MAX_FILES, QuoteSubmissionResponse
from src.schemas.rfq import ParseSummary
from src.wizard import state as reducers
from src.wizard.client import FilePayload, QuoteApiClient
from src.wizard.state import WizardSnapshot
from src.wizard.storage import InMemoryStorage, StoragePort, dump_snapshot, load_snapshot

logger = logging.getLogger(__name__)

SUBMISSION_FAILED_MESSAGE = "Submission failed"
_ID_ALPHABET = string.digits + string.ascii_lowercase


class FileRejectedError(ValueError):
    """Raised when a file cannot be attached (type, size or count)."""


def _new_file_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{int(time.time() * 1000)}-{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class QuoteFormStore:
    """Multi-step quote wizard state with durable progress.

    Usage:
        store = QuoteFormStore(storage=JsonFileStorage(Path(".wizard")))
        store.load()
        store.update_contact({"firstName": "Jane", ...})
        store.next()
        ...
        response = await store.submit()
    """

    def __init__(
        self,
        storage: StoragePort | None = None,
        *,
        api_client: QuoteApiClient | None = None,
        form_settings: FormSettings | None = None,
        release_preview: Callable[[str], None] | None = None,
        source: str = "",
        referrer: str = "",
    ) -> None:
        self._settings = form_settings or settings.forms
        self._storage = storage if storage is not None else InMemoryStorage()
        self._api = api_client or QuoteApiClient(self._settings)
        self._release_preview = release_preview
        self._source = source
        self._referrer = referrer
        self._snapshot = reducers.initial_snapshot(source=source, referrer=referrer)
        self._payloads: dict[str, FilePayload] = {}
        self._reset_task: asyncio.Task[None] | None = None

    # ── Read access ──────────────────────────────────────────────────

    @property
    def snapshot(self) -> WizardSnapshot:
        return self._snapshot

    @property
    def current_step(self) -> int:
        return int(self._snapshot.current_step)

    @property
    def form_data(self) -> Mapping[str, Any]:
        return self._snapshot.form_data

    @property
    def errors(self) -> Mapping[str, str]:
        return self._snapshot.field_errors

    def can_proceed_to(self, step: int) -> bool:
        return reducers.can_proceed_to(self._snapshot, step)

    def file_payloads(self) -> list[FilePayload]:
        """Payloads for the current files, in file order. Files without bytes are skipped."""
        return [self._payloads[f["id"]] for f in self._snapshot.files if f.get("id") in self._payloads]

    # ── Persistence ──────────────────────────────────────────────────

    def _commit(self, snapshot: WizardSnapshot, *, persist: bool = True) -> None:
        if persist:
            snapshot = replace(snapshot, last_saved_at=_now_iso())
            blob = dump_snapshot(snapshot, self._settings.form_storage_version)
            self._storage.set_item(self._settings.form_storage_key, blob)
        self._snapshot = snapshot

    def load(self) -> bool:
        """Resume saved progress. Returns True when a snapshot was restored.

        File metadata survives a reload; file bytes do not.
        """
        raw = self._storage.get_item(self._settings.form_storage_key)
        restored = load_snapshot(raw, self._settings.form_storage_version)
        if restored is None:
            if raw is not None:
                self._storage.remove_item(self._settings.form_storage_key)
            return False
        self._snapshot = restored
        self._payloads.clear()
        logger.info("Loaded saved quote progress from %s", restored.last_saved_at)
        return True

    # ── Navigation ───────────────────────────────────────────────────

    def next(self) -> bool:
        """Advance if the current step validates. Returns True on success."""
        self._commit(reducers.go_next(self._snapshot))
        return not self._snapshot.has_error

    def previous(self) -> None:
        updated = reducers.go_previous(self._snapshot)
        if updated is not self._snapshot:
            self._commit(updated)

    def goto(self, step: int) -> bool:
        updated = reducers.go_to(self._snapshot, step)
        if updated is self._snapshot:
            return step == self._snapshot.current_step
        self._commit(updated)
        return True

    # ── Data updates ─────────────────────────────────────────────────

    def update_contact(self, values: Mapping[str, Any]) -> None:
        self._commit(reducers.update_section(self._snapshot, "contact", values))

    def update_project(self, values: Mapping[str, Any]) -> None:
        self._commit(reducers.update_section(self._snapshot, "project", values))

    def update_services(self, values: Mapping[str, Any]) -> None:
        self._commit(reducers.update_section(self._snapshot, "services", values))

    def update_metadata(self, values: Mapping[str, Any]) -> None:
        self._commit(reducers.update_section(self._snapshot, "metadata", values))

    def prefill_from_rfq(self, text: str) -> ParseSummary:
        """Pre-fill blank fields from pasted RFQ text and return what was found."""
        parsed = parse_rfq_text(text)
        if not parsed.is_empty:
            self._commit(reducers.apply_parsed_rfq(self._snapshot, parsed))
        return generate_parse_summary(parsed, text)

    # ── Files ────────────────────────────────────────────────────────

    def add_file(self, file: Mapping[str, Any], payload: FilePayload | None = None) -> None:
        if payload is not None:
            self._payloads[file["id"]] = payload
        self._commit(reducers.add_file(self._snapshot, file))

    def _check_file(self, name: str, size: int) -> None:
        extension = name[name.rfind("."):].lower() if "." in name else ""
        if extension not in ACCEPTED_FILE_EXTENSIONS:
            raise FileRejectedError(f"{name} is not a supported file type")
        if size > MAX_FILE_SIZE:
            raise FileRejectedError(f"{name} is too large (max 25MB)")
        if len(self._snapshot.files) >= MAX_FILES:
            raise FileRejectedError("You can upload a maximum of 10 files")

    async def upload_file(
        self,
        name: str,
        content: bytes,
        content_type: str | None = None,
        preview_url: str | None = None,
    ) -> dict[str, Any]:
        """Attach a file, then mark it uploaded after the simulated upload delay.

        Raises FileRejectedError for unsupported type, oversize, or a full list.
        """
        self._check_file(name, len(content))

        file = {
            "id": _new_file_id(),
            "name": name,
            "size": len(content),
            "type": content_type or "application/octet-stream",
            "uploadedAt": _now_iso(),
            "status": FileStatus.UPLOADING.value,
        }
        if preview_url:
            file["url"] = preview_url
        self.add_file(file, FilePayload(name=name, content=content, content_type=file["type"]))

        # Bytes only travel with the final submission.
        await asyncio.sleep(self._settings.upload_simulation_delay)
        if any(f["id"] == file["id"] for f in self._snapshot.files):
            self.update_file_status(file["id"], FileStatus.SUCCESS)
        return {**file, "status": FileStatus.SUCCESS.value}

    def _release(self, file: Mapping[str, Any]) -> None:
        url = file.get("url")
        if url and self._release_preview is not None:
            self._release_preview(url)

    def remove_file(self, file_id: str) -> None:
        for file in self._snapshot.files:
            if file.get("id") == file_id:
                self._release(file)
        self._payloads.pop(file_id, None)
        self._commit(reducers.remove_file(self._snapshot, file_id))

    def update_file_status(self, file_id: str, status: FileStatus, error_message: str | None = None) -> None:
        self._commit(reducers.update_file_status(self._snapshot, file_id, status, error_message))

    def clear_files(self) -> None:
        for file in self._snapshot.files:
            self._release(file)
        self._payloads.clear()
        self._commit(reducers.clear_files(self._snapshot))

    # ── Submission ───────────────────────────────────────────────────

    async def submit(self, tracking: Mapping[str, Any] | None = None) -> QuoteSubmissionResponse:
        """Re-validate every step, then post the quote.

        On a failing step the wizard jumps back to it and nothing is sent.
        On success a reset is scheduled after the configured grace delay.
        """
        checked, failing_step = reducers.check_all_steps(self._snapshot)
        self._commit(checked)
        if failing_step is not None:
            return QuoteSubmissionResponse(
                success=False,
                message=checked.error_message,
                errors=dict(checked.field_errors),
            )

        self._commit(reducers.begin_submit(self._snapshot), persist=False)
        response = await self._api.submit(
            reducers.to_plain(self._snapshot.form_data),
            self.file_payloads(),
            tracking,
        )

        if response.success and response.quote_id:
            self._commit(reducers.submit_succeeded(self._snapshot, response.quote_id), persist=False)
            logger.info("Quote submitted: %s", response.quote_id)
            await emit(SystemEvent(
                event_type=EventType.WIZARD_SUBMITTED,
                quote_id=response.quote_id,
                data={"files": len(self._payloads)},
                source_module="wizard.store",
            ))
            self._schedule_reset()
        else:
            message = response.message or SUBMISSION_FAILED_MESSAGE
            self._commit(reducers.submit_failed(self._snapshot, message), persist=False)
            logger.warning("Quote submission failed: %s", message)
        return response

    def _schedule_reset(self) -> None:
        self.cancel_scheduled_reset()
        self._reset_task = asyncio.get_running_loop().create_task(self._reset_later())

    async def _reset_later(self) -> None:
        await asyncio.sleep(self._settings.reset_delay)
        self.reset()

    def cancel_scheduled_reset(self) -> None:
        if self._reset_task is not None and not self._reset_task.done():
            self._reset_task.cancel()
        self._reset_task = None

    def reset(self) -> None:
        """Clear memory, release previews and drop the durable snapshot."""
        task, self._reset_task = self._reset_task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
        for file in self._snapshot.files:
            self._release(file)
        self._payloads.clear()
        self._snapshot = reducers.initial_snapshot(source=self._source, referrer=self._referrer)
        self._storage.remove_item(self._settings.form_storage_key)
