"""Tests for the wizard's HTTP client and the hero quote form.

Covers:
- JSON body without files, multipart with a data field plus file_<n> parts
- Tracking context merged into the document
- Network errors and garbage bodies come back as a failed response
- Hero form: phone formatting, name splitting, document defaults, submit
"""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import ValidationError

from src.config import FormSettings
from src.wizard.client import NETWORK_ERROR_MESSAGE, FilePayload, QuoteApiClient
from src.wizard.hero import (
    DEFAULT_PHONE,
    HERO_SOURCE,
    HeroQuoteRequest,
    build_hero_submission,
    format_phone,
    split_name,
    submit_hero_quote,
)

FORM_SETTINGS = FormSettings(api_base_url="http://quotes.test/")
ACCEPTED = {"success": True, "quoteId": "CMF-ABC-123456", "message": "Thanks"}


def _client(handler) -> QuoteApiClient:
    return QuoteApiClient(FORM_SETTINGS, transport=httpx.MockTransport(handler))


def _hero_request(**overrides) -> HeroQuoteRequest:
    fields = {
        "projectDetails": "Custom steel railing for a back deck",
        "contactName": "Sam Lee",
        "email": "sam@example.com",
        **overrides,
    }
    return HeroQuoteRequest.model_validate(fields)


# ── QuoteApiClient ───────────────────────────────────────────────────


class TestQuoteApiClient:
    def test_url(self):
        assert QuoteApiClient(FORM_SETTINGS).url == "http://quotes.test/api/submit-quote"

    @pytest.mark.asyncio()
    async def test_json_body(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ACCEPTED)

        result = await _client(handler).submit({"contact": {"email": "a@b.co"}}, tracking={"hutk": "abc"})

        assert result.success is True
        assert result.quote_id == "CMF-ABC-123456"
        assert seen[0].headers["content-type"] == "application/json"
        assert json.loads(seen[0].content) == {"contact": {"email": "a@b.co"}, "tracking": {"hutk": "abc"}}

    @pytest.mark.asyncio()
    async def test_multipart_with_files(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ACCEPTED)

        payloads = [FilePayload("frame.pdf", b"%PDF", "application/pdf"), FilePayload("b.dxf", b"0\nSECTION")]
        await _client(handler).submit({"files": []}, payloads)

        request = seen[0]
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="data"' in request.content
        assert b'name="file_0"; filename="frame.pdf"' in request.content
        assert b'name="file_1"; filename="b.dxf"' in request.content

    @pytest.mark.asyncio()
    async def test_validation_error_body_passes_through(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                400,
                json={"success": False, "message": "Validation failed", "errors": {"contact.email": "Email is required"}},
            )

        result = await _client(handler).submit({})

        assert result.success is False
        assert result.errors == {"contact.email": "Email is required"}

    @pytest.mark.asyncio()
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        result = await _client(handler).submit({})

        assert result.success is False
        assert result.message == NETWORK_ERROR_MESSAGE

    @pytest.mark.asyncio()
    async def test_non_json_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad gateway</html>")

        result = await _client(handler).submit({})

        assert result.success is False
        assert result.message == NETWORK_ERROR_MESSAGE


# ── Hero form ────────────────────────────────────────────────────────


class TestHeroHelpers:
    @pytest.mark.parametrize(
        ("raw", "formatted"),
        [
            ("(416) 555 1234", "416-555-1234"),
            ("416.555.1234", "416-555-1234"),
            ("+1 416 555 1234", "141-655-5123"),
            ("555-1234", DEFAULT_PHONE),
            (None, DEFAULT_PHONE),
        ],
    )
    def test_format_phone(self, raw, formatted):
        assert format_phone(raw) == formatted

    def test_split_name(self):
        assert split_name("Sam Lee") == ("Sam", "Lee")
        assert split_name("Jane van der Berg") == ("Jane", "van der Berg")
        assert split_name("Cher") == ("Cher", "Unknown")

    def test_short_details_rejected(self):
        with pytest.raises(ValidationError):
            _hero_request(projectDetails="railing")


class TestHeroSubmission:
    def test_document_defaults(self):
        document = build_hero_submission(
            _hero_request(phone="(416) 555 1234"),
            today=date(2030, 1, 1),
        )

        assert document["contact"] == {
            "firstName": "Sam",
            "lastName": "Lee",
            "email": "sam@example.com",
            "phone": "416-555-1234",
            "company": "Individual",
        }
        project = document["project"]
        assert project["projectType"] == "custom-fabrication"
        assert project["material"] == "steel"
        assert project["quantity"] == 1
        assert project["requiredDate"] == "2030-02-15"
        assert document["services"]["laserCutting"] is True
        assert document["metadata"]["source"] == HERO_SOURCE

    def test_file_entries(self):
        document = build_hero_submission(_hero_request(), [FilePayload("deck.pdf", b"1234", "application/pdf")])

        entry = document["files"][0]
        assert entry["name"] == "deck.pdf"
        assert entry["size"] == 4
        assert entry["status"] == "success"

    @pytest.mark.asyncio()
    async def test_submit_uses_client(self):
        api = AsyncMock()
        payloads = [FilePayload("deck.pdf", b"1234")]

        await submit_hero_quote(_hero_request(company="Lee Decks"), payloads, {"pageName": "Home"}, client=api)

        document, sent = api.submit.await_args.args
        assert document["contact"]["company"] == "Lee Decks"
        assert document["tracking"] == {"pageName": "Home"}
        assert sent == payloads
