"""Quote submission pipeline.

enrich → hero defaults → validate → quote id → save files → CRM
→ (fallback backup) → notification email.

Validation is the only gate. Once a submission validates, the caller always
gets a quote id: file persistence, CRM forwarding and the email are
best-effort and their failures are logged, not returned.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from src.config import Settings, settings
from src.crm.hubspot import CrmFailure, CrmOutcome, CrmResult, HubSpotClient, hubspot_client
from src.events.bus import emit
from src.models.enums import BudgetRange
from src.notifications.email import NotificationService, notification_service
from src.quotes.files import IncomingUpload, SavedFile, UploadStorage
from src.quotes.ids import generate_quote_id
from src.schemas.events import EventType, SystemEvent
from src.schemas.quote import QuoteSubmission, QuoteSubmissionResponse
from src.validation import validate_submission
from src.wizard.hero import HERO_SOURCE

logger = logging.getLogger(__name__)

INVALID_FORM_DATA = "Invalid form data"
VALIDATION_FAILED = "Validation failed"
HERO_DEFAULT_THICKNESS = "0.25"
HERO_DEFAULT_BUDGET = BudgetRange.FROM_1K_TO_5K.value
UNKNOWN_IP = "unknown"


class QuotePayloadError(ValueError):
    """The request body could not be read as a submission document."""

    def __init__(self, message: str = INVALID_FORM_DATA) -> None:
        super().__init__(message)
        self.message = message


def success_message(quote_id: str) -> str:
    return (
        f"Thank you for your quote request! Your reference number is {quote_id}. "
        "We'll contact you within 24 hours."
    )


def client_ip(headers: Mapping[str, str]) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, else "unknown"."""
    forwarded = headers.get("x-forwarded-for", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return headers.get("x-real-ip", "").strip() or UNKNOWN_IP


def _normalize_timestamp(value: Any) -> Any:
    """ISO-8601 for strings and epoch milliseconds; anything else is left for validation."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).isoformat()
        except ValueError:
            return value
    return value


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


class QuoteService:
    """Runs one submission through the pipeline. Stateless between requests."""

    def __init__(
        self,
        app_settings: Settings | None = None,
        *,
        crm: HubSpotClient | None = None,
        notifier: NotificationService | None = None,
        uploads: UploadStorage | None = None,
    ) -> None:
        self._settings = app_settings or settings
        self._crm = crm or hubspot_client
        self._notifier = notifier or notification_service
        self._uploads = uploads or UploadStorage(self._settings.storage)

    # ── Enrichment ───────────────────────────────────────────────────

    def enrich(self, form_data: Any, headers: Mapping[str, str]) -> dict[str, Any]:
        """Attach server-observed metadata and normalize file timestamps."""
        if not isinstance(form_data, dict):
            raise QuotePayloadError()
        data = copy.deepcopy(form_data)

        metadata = data.get("metadata")
        metadata = dict(metadata) if isinstance(metadata, dict) else {}
        metadata["submittedAt"] = datetime.now(timezone.utc).isoformat()
        metadata["ipAddress"] = client_ip(headers)
        data["metadata"] = metadata

        files = data.get("files")
        if isinstance(files, list):
            data["files"] = [
                {**f, "uploadedAt": _normalize_timestamp(f.get("uploadedAt"))} if isinstance(f, dict) else f
                for f in files
            ]
        return data

    @staticmethod
    def apply_hero_defaults(data: dict[str, Any]) -> dict[str, Any]:
        """Fill fields the hero form never asks for. Only for hero-form submissions."""
        metadata = data.get("metadata")
        if not isinstance(metadata, dict) or metadata.get("source") != HERO_SOURCE:
            return data

        contact = data.get("contact")
        if isinstance(contact, dict) and contact.get("jobTitle") is None:
            contact["jobTitle"] = ""
        project = data.get("project")
        if isinstance(project, dict):
            if _is_blank(project.get("thickness")):
                project["thickness"] = HERO_DEFAULT_THICKNESS
            if _is_blank(project.get("budget")):
                project["budget"] = HERO_DEFAULT_BUDGET
        return data

    # ── Pipeline ─────────────────────────────────────────────────────

    async def process(
        self,
        form_data: Any,
        uploads: Sequence[IncomingUpload] = (),
        headers: Mapping[str, str] | None = None,
    ) -> tuple[int, QuoteSubmissionResponse]:
        """Returns (HTTP status, response body)."""
        data = self.apply_hero_defaults(self.enrich(form_data, headers or {}))
        source = data["metadata"].get("source")
        await self._emit(EventType.QUOTE_RECEIVED, None, {"files": len(uploads), "source": source})

        validation = validate_submission(data)
        if not validation.success or validation.submission is None:
            logger.warning("Quote validation failed: %s", validation.errors)
            await self._emit(EventType.QUOTE_VALIDATION_FAILED, None, {"fields": sorted(validation.errors)})
            return 400, QuoteSubmissionResponse(
                success=False,
                message=VALIDATION_FAILED,
                errors=validation.errors,
            )
        submission = validation.submission

        quote_id = generate_quote_id()
        saved, failed = self._uploads.save(quote_id, uploads)
        if saved:
            await self._emit(EventType.FILE_SAVED, quote_id, {"count": len(saved)})
        if failed:
            await self._emit(EventType.FILE_SAVE_FAILED, quote_id, {"names": failed})

        result = await self._crm.submit_quote(
            submission,
            [s.manifest_entry() for s in saved],
            quote_id=quote_id,
        )
        contact_id, deal_id = await self._handle_crm_result(result, quote_id, submission, saved)

        await self._notifier.notify_quote(submission, quote_id, saved)

        await self._emit(EventType.QUOTE_ACCEPTED, quote_id, {"crm": contact_id is not None, "files": len(saved)})
        logger.info("Quote %s accepted", quote_id)
        return 200, QuoteSubmissionResponse(
            success=True,
            quote_id=quote_id,
            message=success_message(quote_id),
            hubspot_contact_id=contact_id,
            hubspot_deal_id=deal_id,
        )

    async def _handle_crm_result(
        self,
        result: CrmResult,
        quote_id: str,
        submission: QuoteSubmission,
        saved: Sequence[SavedFile],
    ) -> tuple[str | None, str | None]:
        """Turn the CRM result into response ids; a failure becomes a local backup."""
        if isinstance(result, CrmOutcome):
            return result.contact_id, result.deal_id

        failure: CrmFailure = result
        logger.error("HubSpot submission error for %s: %s", quote_id, failure.reason)
        try:
            path = self._uploads.write_backup(quote_id, submission.to_wire(), saved, crm_error=failure.reason)
        except OSError:
            logger.exception("Failed to write CRM backup for %s", quote_id)
            path = None
        await self._emit(
            EventType.CRM_FALLBACK,
            quote_id,
            {"reason": failure.reason, "backup": str(path) if path else None},
        )
        return None, None

    @staticmethod
    async def _emit(event_type: EventType, quote_id: str | None, data: dict[str, Any]) -> None:
        await emit(SystemEvent(
            event_type=event_type,
            quote_id=quote_id,
            data=data,
            source_module="quotes.service",
        ))


# Module-level singleton
quote_service = QuoteService()


def get_quote_service() -> QuoteService:
    """FastAPI dependency; tests override it via app.dependency_overrides."""
    return quote_service
