"""Tests for the /api/submit-quote endpoint.

Covers:
- CORS preflight and CORS headers on every response
- JSON and multipart bodies, including binary file parts
- Unreadable payloads → 400 "Invalid form data"
- Validation errors keyed by path
- CRM fallback still answers success with a quote id
- Unexpected errors → generic 500, traceback only when enabled
"""

from __future__ import annotations

import json
import re
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.config import StorageSettings
from src.crm.hubspot import CrmFailure, CrmOutcome
from src.quotes.files import UploadStorage
from src.quotes.router import GENERIC_ERROR_MESSAGE, router
from src.quotes.service import QuoteService, get_quote_service
from src.wizard.hero import HeroQuoteRequest, build_hero_submission

URL = "/api/submit-quote"
QUOTE_ID_RE = re.compile(r"^CMF-[0-9A-Z]+-[0-9A-Z]+$")


def _document() -> dict:
    return {
        "contact": {
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "jane@acme.com",
            "phone": "416-555-1234",
            "company": "Acme Corp",
        },
        "project": {
            "projectName": "Bracket run",
            "projectType": "prototype",
            "material": "steel",
            "quantity": 4,
            "requiredDate": (date.today() + timedelta(days=14)).isoformat(),
            "description": "Prototype brackets for a conveyor frame",
        },
        "files": [],
        "services": {
            "laserCutting": False,
            "metalBending": False,
            "welding": True,
            "assembly": False,
            "finishing": False,
            "design": False,
        },
    }


@pytest.fixture()
def crm() -> AsyncMock:
    mock = AsyncMock()
    mock.submit_quote.return_value = CrmOutcome(contact_id="101", deal_id="202")
    return mock


@pytest.fixture()
def client(crm, tmp_path) -> TestClient:
    service = QuoteService(
        crm=crm,
        notifier=AsyncMock(),
        uploads=UploadStorage(StorageSettings(uploads_dir=tmp_path / "uploads", backups_dir=tmp_path / "backups")),
    )
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_quote_service] = lambda: service
    return TestClient(app)


class TestPreflight:
    def test_options(self, client):
        response = client.options(URL)

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "Content-Type"


class TestJsonSubmission:
    def test_accepted(self, client):
        response = client.post(URL, json=_document())

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert QUOTE_ID_RE.match(body["quoteId"])
        assert body["hubspotContactId"] == "101"
        assert body["hubspotDealId"] == "202"
        assert response.headers["access-control-allow-origin"] == "*"

    def test_validation_errors(self, client, crm):
        document = _document()
        del document["contact"]["email"]

        response = client.post(URL, json=document)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "message": "Validation failed",
            "errors": {"contact.email": "Email is required"},
        }
        crm.submit_quote.assert_not_awaited()

    def test_malformed_json(self, client):
        response = client.post(URL, content=b"{not json", headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": "Invalid form data"}

    def test_array_body(self, client):
        response = client.post(URL, json=[1, 2, 3])
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid form data"

    def test_forwarded_ip_reaches_crm(self, client, crm):
        client.post(URL, json=_document(), headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1"})
        assert crm.submit_quote.await_args.args[0].metadata.ip_address == "203.0.113.7"

    def test_crm_fallback(self, client, crm, tmp_path):
        crm.submit_quote.return_value = CrmFailure("HubSpot API key is not configured")

        response = client.post(URL, json=_document())

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert "hubspotContactId" not in body
        assert "hubspotDealId" not in body
        assert (tmp_path / "backups" / f"{body['quoteId']}.json").exists()


class TestMultipartSubmission:
    def test_files_are_saved(self, client, crm, tmp_path):
        response = client.post(
            URL,
            data={"data": json.dumps(_document())},
            files=[
                ("file_0", ("frame.pdf", b"%PDF-1.4 frame", "application/pdf")),
                ("file_1", ("frame v2.step", b"ISO-10303-21;", "application/octet-stream")),
            ],
        )

        assert response.status_code == 200
        quote_id = response.json()["quoteId"]
        saved = sorted(p.name for p in (tmp_path / "uploads" / quote_id).iterdir())
        assert len(saved) == 2
        assert any(name.endswith("_frame.pdf") for name in saved)
        assert any(name.endswith("_frame_v2.step") for name in saved)

        manifest = crm.submit_quote.await_args.args[1]
        assert [entry.name for entry in manifest] == ["frame.pdf", "frame v2.step"]

    def test_missing_data_field(self, client):
        response = client.post(URL, files=[("file_0", ("a.pdf", b"x", "application/pdf"))])

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid form data"

    def test_data_field_not_json(self, client):
        response = client.post(URL, data={"data": "{oops"}, files=[("file_0", ("a.pdf", b"x", "application/pdf"))])
        assert response.status_code == 400

    def test_hero_submission(self, client, crm):
        request = HeroQuoteRequest(
            projectDetails="Need a custom steel railing for a deck",
            contactName="Sam Lee",
            email="sam@example.com",
        )

        response = client.post(URL, json=build_hero_submission(request))

        assert response.status_code == 200
        submission = crm.submit_quote.await_args.args[0]
        assert submission.project.thickness == "0.25"
        assert submission.project.budget.value == "1k-5k"
        assert submission.contact.phone == "416-555-0000"


class TestServerError:
    def test_generic_message(self, client, crm):
        crm.submit_quote.side_effect = RuntimeError("unexpected")

        with patch("src.quotes.router.settings", MagicMock(show_error_details=False)):
            response = client.post(URL, json=_document())

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": GENERIC_ERROR_MESSAGE}

    def test_detail_when_enabled(self, client, crm):
        crm.submit_quote.side_effect = RuntimeError("unexpected")

        with patch("src.quotes.router.settings", MagicMock(show_error_details=True)):
            response = client.post(URL, json=_document())

        assert response.status_code == 500
        assert "RuntimeError: unexpected" in response.json()["detail"]
