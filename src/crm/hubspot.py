"""Async httpx client for the HubSpot CRM and Forms APIs.

Endpoints:
    POST {base_url}/crm/v3/objects/contacts   (Bearer auth)
    POST {base_url}/crm/v3/objects/deals      (Bearer auth)
    POST {forms_url}/{portal_id}/{form_guid}  (no auth)

submit_quote() is the single entry point for the quote pipeline and never
raises: it returns CrmOutcome on success or CrmFailure with a reason.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

import httpx

from src.config import HubSpotSettings, settings
from src.crm.mapping import (
    FileManifestEntry,
    build_contact_properties,
    build_deal_payload,
    build_forms_submission,
)
from src.events.bus import emit
from src.schemas.events import EventType, SystemEvent
from src.schemas.quote import ContactInfo, QuoteSubmission, TrackingContext

logger = logging.getLogger(__name__)

_EXISTING_ID_RE = re.compile(r"Existing ID: (\d+)")
_CONTACTS_PATH = "/crm/v3/objects/contacts"
_DEALS_PATH = "/crm/v3/objects/deals"
NOT_CONFIGURED_REASON = "HubSpot API key is not configured"


class CrmError(Exception):
    """A HubSpot call failed or returned something unusable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CrmOutcome:
    contact_id: str
    deal_id: str


@dataclass(frozen=True)
class CrmFailure:
    reason: str
    contact_id: str | None = None


CrmResult = CrmOutcome | CrmFailure


def _created_id(response: httpx.Response, what: str) -> str:
    try:
        return str(response.json()["id"])
    except (ValueError, KeyError, TypeError) as exc:
        msg = f"Unexpected HubSpot response creating {what}"
        raise CrmError(msg, status_code=response.status_code) from exc


def _existing_contact_id(response: httpx.Response) -> str | None:
    """Pull the existing contact id out of a 409 duplicate-contact body."""
    try:
        message = str(response.json().get("message", ""))
    except (ValueError, AttributeError):
        message = response.text
    match = _EXISTING_ID_RE.search(message)
    return match.group(1) if match else None


class HubSpotClient:
    """Thin async wrapper over the HubSpot v3 contact/deal endpoints and the Forms API."""

    def __init__(
        self,
        hubspot_settings: HubSpotSettings | None = None,
        *,
        site_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = hubspot_settings or settings.hubspot
        self._site_url = site_url or settings.site_url
        self._timeout = httpx.Timeout(self._settings.hubspot_timeout, connect=5.0)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            transport = self._transport or httpx.AsyncHTTPTransport(retries=self._settings.hubspot_max_retries)
            self._client = httpx.AsyncClient(
                base_url=self._settings.hubspot_base_url,
                timeout=self._timeout,
                transport=transport,
            )
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._settings.hubspot_api_key.strip()}"}

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    # ── Contacts & deals ─────────────────────────────────────────────

    async def create_or_find_contact(self, contact: ContactInfo) -> str:
        """Create the contact, or reuse the existing one on a duplicate-email 409."""
        response = await self._http().post(
            _CONTACTS_PATH,
            json={"properties": build_contact_properties(contact)},
            headers=self._auth_headers(),
        )
        if response.status_code == httpx.codes.CONFLICT:
            existing_id = _existing_contact_id(response)
            if existing_id:
                logger.info("HubSpot contact already exists: %s", existing_id)
                return existing_id
        if response.is_error:
            msg = f"Failed to create contact in HubSpot (HTTP {response.status_code})"
            raise CrmError(msg, status_code=response.status_code)
        return _created_id(response, "contact")

    async def create_deal(
        self,
        submission: QuoteSubmission,
        manifest: Sequence[FileManifestEntry],
        contact_id: str,
    ) -> str:
        response = await self._http().post(
            _DEALS_PATH,
            json=build_deal_payload(submission, manifest, contact_id),
            headers=self._auth_headers(),
        )
        if response.is_error:
            msg = f"Failed to create deal in HubSpot (HTTP {response.status_code})"
            raise CrmError(msg, status_code=response.status_code)
        return _created_id(response, "deal")

    # ── Forms API ────────────────────────────────────────────────────

    async def track_form_submission(
        self,
        submission: QuoteSubmission,
        page_context: TrackingContext | None = None,
    ) -> None:
        """Fire-and-forget analytics submission. Failures are logged only."""
        if not self._settings.forms_configured:
            logger.warning("HubSpot Forms API not configured; skipping form tracking")
            return

        url = (
            f"{self._settings.hubspot_forms_url.rstrip('/')}/"
            f"{self._settings.hubspot_portal_id}/{self._settings.hubspot_form_guid}"
        )
        try:
            response = await self._http().post(
                url,
                json=build_forms_submission(submission, page_context, self._site_url),
            )
        except httpx.HTTPError:
            logger.warning("HubSpot Forms API request failed", exc_info=True)
            return
        if response.is_error:
            logger.warning("HubSpot Forms API error %s: %s", response.status_code, response.text[:200])

    # ── Pipeline entry point ─────────────────────────────────────────

    async def submit_quote(
        self,
        submission: QuoteSubmission,
        manifest: Sequence[FileManifestEntry] = (),
        quote_id: str | None = None,
    ) -> CrmResult:
        """Contact → deal → form tracking. Never raises."""
        if not self.is_configured:
            logger.warning(NOT_CONFIGURED_REASON)
            return CrmFailure(NOT_CONFIGURED_REASON)

        await emit(SystemEvent(
            event_type=EventType.CRM_REQUEST,
            quote_id=quote_id,
            data={"integration": "hubspot", "files": len(manifest)},
            source_module="crm.hubspot",
        ))

        try:
            contact_id = await self.create_or_find_contact(submission.contact)
        except (CrmError, httpx.HTTPError) as exc:
            logger.error("HubSpot contact step failed: %s", exc)
            return CrmFailure(f"Failed to create contact in HubSpot: {exc}")

        try:
            deal_id = await self.create_deal(submission, manifest, contact_id)
        except (CrmError, httpx.HTTPError) as exc:
            logger.error("HubSpot deal step failed: %s", exc)
            return CrmFailure(f"Failed to create deal in HubSpot: {exc}", contact_id=contact_id)

        await self.track_form_submission(submission, submission.tracking)

        await emit(SystemEvent(
            event_type=EventType.CRM_RESPONSE,
            quote_id=quote_id,
            data={"integration": "hubspot", "contact_id": contact_id, "deal_id": deal_id},
            source_module="crm.hubspot",
        ))
        return CrmOutcome(contact_id=contact_id, deal_id=deal_id)


# Module-level singleton
hubspot_client = HubSpotClient()
