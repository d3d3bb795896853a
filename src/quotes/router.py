"""Quote submission endpoint.

    OPTIONS /api/submit-quote   CORS preflight
    POST    /api/submit-quote   JSON body, or multipart with a JSON ``data``
                                field plus ``file_<index>`` parts
"""
# ruff: noqa: B008

from __future__ import annotations

import json
import logging
import traceback
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import settings
from src.events.bus import emit
from src.quotes.files import IncomingUpload
from src.quotes.service import QuotePayloadError, QuoteService, get_quote_service
from src.schemas.events import EventType, SystemEvent
from src.schemas.quote import QuoteSubmissionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["quotes"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}
GENERIC_ERROR_MESSAGE = "An error occurred while processing your request. Please try again."
FILE_FIELD_PREFIX = "file_"


def _json_response(status_code: int, body: QuoteSubmissionResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.to_wire(), headers=CORS_HEADERS)


async def read_submission(request: Request) -> tuple[Any, list[IncomingUpload]]:
    """Split the request into the JSON document and any binary file parts."""
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        try:
            return await request.json(), []
        except ValueError as exc:
            raise QuotePayloadError() from exc

    try:
        form = await request.form()
    except StarletteHTTPException as exc:
        raise QuotePayloadError() from exc

    raw = form.get("data")
    if not isinstance(raw, str):
        raise QuotePayloadError()
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise QuotePayloadError() from exc

    uploads: list[IncomingUpload] = []
    for key, value in form.multi_items():
        if key.startswith(FILE_FIELD_PREFIX) and isinstance(value, UploadFile):
            uploads.append(IncomingUpload(
                name=value.filename or key,
                content=await value.read(),
                content_type=value.content_type or "application/octet-stream",
            ))
    return data, uploads


@router.options("/submit-quote")
async def submit_quote_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/submit-quote")
async def submit_quote(
    request: Request,
    service: QuoteService = Depends(get_quote_service),
) -> JSONResponse:
    """Validate, persist and forward a quote request."""
    try:
        form_data, uploads = await read_submission(request)
        status_code, body = await service.process(form_data, uploads, request.headers)
    except QuotePayloadError as exc:
        logger.warning("Rejected unreadable quote payload")
        return _json_response(400, QuoteSubmissionResponse(success=False, message=exc.message))
    except Exception as exc:
        logger.exception("Quote submission error")
        detail = traceback.format_exc() if settings.show_error_details else None
        await emit(SystemEvent(
            event_type=EventType.QUOTE_FAILED,
            data={"error": type(exc).__name__},
            source_module="quotes.router",
        ))
        return _json_response(500, QuoteSubmissionResponse(success=False, message=GENERIC_ERROR_MESSAGE, detail=detail))
    return _json_response(status_code, body)
