"""Async httpx client the wizard uses to post a finished quote."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from src.config import FormSettings, settings
from src.schemas.quote import QuoteSubmissionResponse

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "An error occurred. Please try again."


@dataclass(frozen=True)
class FilePayload:
    """Binary content of an attached file; held in memory only."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"


class QuoteApiClient:
    """Posts a submission as JSON, or as multipart when file bytes are attached.

    Multipart layout: a ``data`` field holding the JSON document plus one
    ``file_<index>`` part per payload.
    """

    def __init__(
        self,
        form_settings: FormSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        forms = form_settings or settings.forms
        self._url = f"{forms.api_base_url.rstrip('/')}{forms.submit_path}"
        self._timeout = httpx.Timeout(30.0, connect=5.0)
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    async def submit(
        self,
        form_data: Mapping[str, Any],
        payloads: Sequence[FilePayload] = (),
        tracking: Mapping[str, Any] | None = None,
    ) -> QuoteSubmissionResponse:
        """Send the quote. Transport problems come back as a failed response."""
        document = dict(form_data)
        if tracking:
            document["tracking"] = dict(tracking)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                if payloads:
                    files = [
                        (f"file_{index}", (p.name, p.content, p.content_type))
                        for index, p in enumerate(payloads)
                    ]
                    response = await client.post(self._url, data={"data": json.dumps(document)}, files=files)
                else:
                    response = await client.post(self._url, json=document)
                body = response.json()
        except httpx.HTTPError:
            logger.exception("Quote submission request failed")
            return QuoteSubmissionResponse(success=False, message=NETWORK_ERROR_MESSAGE)
        except ValueError:
            logger.warning("Quote endpoint returned a non-JSON body")
            return QuoteSubmissionResponse(success=False, message=NETWORK_ERROR_MESSAGE)

        try:
            return QuoteSubmissionResponse.model_validate(body)
        except ValidationError:
            logger.warning("Quote endpoint returned an unexpected body: %s", body)
            return QuoteSubmissionResponse(success=False, message=NETWORK_ERROR_MESSAGE)
