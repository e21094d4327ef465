"""
Unit tests for the HTTP API
"""
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from starlette.datastructures import UploadFile

from medparse import main
from medparse.services.gemini_service import GeminiService
from medparse.services.job_service import JobService
from medparse.services.processing_service import ProcessingService
from medparse.services.recommendation_service import RecommendationService


class RecordingRunner:
    """Keeps submitted jobs off the event loop so requests can be inspected alone"""

    def __init__(self):
        self.submitted = []

    def submit(self, coro, name=None):
        self.submitted.append(name)
        coro.close()


@pytest.fixture
def api(monkeypatch, store, storage, webhooks, fake_genai_client, model_response):
    fake_genai_client.aio.models.generate_content.return_value = model_response("{}")
    gemini = GeminiService(api_key="test-key", client=fake_genai_client)
    processing = ProcessingService(gemini, RecommendationService(gemini), store, storage, timeout_seconds=5)
    runner = RecordingRunner()
    jobs = JobService(store, processing, webhooks, runner=runner)

    monkeypatch.setattr(main, "db_service", store)
    monkeypatch.setattr(main, "processing_service", processing)
    monkeypatch.setattr(main, "job_service", jobs)

    tenant = store.add_tenant(webhook_url="https://client.example/hooks")
    return SimpleNamespace(client=TestClient(main.app), store=store, runner=runner, tenant=tenant)


def png(name="page.png"):
    return ("files", (name, b"\x89PNG fake", "image/png"))


def test_root_banner(api):
    response = api.client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "active"


def test_health_reports_database_state(api, monkeypatch):
    assert api.client.get("/health").json()["database"] == "connected"

    async def down():
        raise ConnectionError("could not connect to server")

    monkeypatch.setattr(api.store, "ping", down)
    response = api.client.get("/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_parse_document_end_to_end(api):
    response = api.client.post(
        "/api/parse-document",
        files=[png("p1.png"), png("p2.png")],
        data={"originalFileName": "clinic-visit.pdf"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["pagesProcessed"] == 2
    assert len(body["imageUrls"]) == 2
    assert 0 <= body["confidenceScore"] <= 100

    fetched = api.client.get("/api/parse-document", params={"id": body["id"]}).json()
    assert fetched["fileName"] == "clinic-visit.pdf"
    assert fetched["structuredData"]["patient"]["name"] == "Unknown"
    assert fetched["fields"][0] == {"label": "Patient Name", "value": "Unknown"}

    listed = api.client.get("/api/documents").json()["documents"]
    assert [doc["id"] for doc in listed] == [body["id"]]


def test_parse_document_requires_files(api):
    response = api.client.post("/api/parse-document", data={"originalFileName": "x.pdf"})
    assert response.status_code == 400
    assert response.json() == {"error": "No files provided"}


def test_parse_document_rejects_non_images(api):
    response = api.client.post("/api/parse-document", files=[("files", ("a.pdf", b"%PDF", "application/pdf"))])
    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]


def test_get_parsed_document_errors(api):
    assert api.client.get("/api/parse-document").status_code == 400
    assert api.client.get("/api/parse-document", params={"id": "missing"}).status_code == 404


def test_search_documents(api):
    api.client.post("/api/parse-document", files=[png()], data={"originalFileName": "Cardiology-Referral.png"})

    assert api.client.get("/api/search-documents", params={"query": ""}).json() == {"documents": []}
    hits = api.client.get("/api/search-documents", params={"query": "cardiology"}).json()["documents"]
    assert [hit["fileName"] for hit in hits] == ["Cardiology-Referral.png"]


@pytest.mark.parametrize("headers,status,error", [
    ({}, 401, "Missing API key"),
    ({"X-API-Key": "wrong"}, 401, "Invalid API key"),
    ({"X-API-Key": "key-closed"}, 403, "Tenant account is inactive"),
])
def test_tenant_auth(api, headers, status, error):
    api.store.add_tenant(name="Closed", api_key="key-closed", is_active=False)

    response = api.client.get("/api/v1/parse", params={"job_id": "any"}, headers=headers)

    assert response.status_code == status
    assert response.json() == {"error": error}


def test_submit_job_is_accepted_and_detached(api):
    response = api.client.post(
        "/api/v1/parse",
        files={"file": ("scan.pdf", b"%PDF-1.7", "application/pdf")},
        headers={"X-API-Key": "key-acme"},
    )

    assert response.status_code == 202
    body = response.json()
    assert body["status"] == "pending"
    assert body["callback_url"] == "https://client.example/hooks"
    assert (body["queue_position"], body["queue_limit"]) == (0, 2)
    assert api.runner.submitted == [f"job-{body['job_id']}"]

    status = api.client.get("/api/v1/parse", params={"job_id": body["job_id"]}, headers={"X-API-Key": "key-acme"})
    assert status.json()["status"] == "pending"


def test_submit_job_over_capacity(api):
    upload = {"file": ("scan.png", b"png", "image/png")}
    headers = {"X-API-Key": "key-acme"}
    for _ in range(2):
        assert api.client.post("/api/v1/parse", files=upload, headers=headers).status_code == 202

    response = api.client.post("/api/v1/parse", files=upload, headers=headers)

    assert response.status_code == 429
    body = response.json()
    assert (body["queue_limit"], body["current_queue_size"], body["tier"]) == (2, 2, "free")
    assert len(api.store.jobs) == 2


def test_submit_job_validation(api):
    headers = {"X-API-Key": "key-acme"}
    api.store.add_tenant(name="No Hook", api_key="key-nohook")

    no_file = api.client.post("/api/v1/parse", data={"callback_url": "https://x.example"}, headers=headers)
    bad_type = api.client.post("/api/v1/parse", files={"file": ("a.txt", b"hi", "text/plain")}, headers=headers)
    no_callback = api.client.post(
        "/api/v1/parse", files={"file": ("a.png", b"png", "image/png")}, headers={"X-API-Key": "key-nohook"}
    )

    assert no_file.status_code == 400
    assert bad_type.status_code == 400
    assert no_callback.json() == {"error": "No callback URL provided"}


def test_job_status_errors(api):
    headers = {"X-API-Key": "key-acme"}
    assert api.client.get("/api/v1/parse", headers=headers).status_code == 400
    assert api.client.get("/api/v1/parse", params={"job_id": "missing"}, headers=headers).status_code == 404


def test_tenant_documents_are_scoped(api):
    api.store.add_tenant(name="Other", api_key="key-other")
    document = api.client.post("/api/parse-document", files=[png()]).json()
    api.store.documents[document["id"]]["tenant_id"] = api.tenant.id

    own = api.client.get("/api/v1/documents", params={"id": document["id"]}, headers={"X-API-Key": "key-acme"})
    other = api.client.get("/api/v1/documents", params={"id": document["id"]}, headers={"X-API-Key": "key-other"})

    assert own.status_code == 200
    assert own.json()["patient_name"] == "Unknown"
    assert other.status_code == 404


def test_unreadable_upload_creates_no_job(api, monkeypatch):
    async def broken_read(self, size=-1):
        raise OSError("client disconnected")

    monkeypatch.setattr(UploadFile, "read", broken_read)

    response = api.client.post(
        "/api/v1/parse",
        files={"file": ("scan.png", b"png", "image/png")},
        headers={"X-API-Key": "key-acme"},
    )

    assert response.status_code == 400
    assert "client disconnected" in response.json()["error"]
    assert api.store.jobs == {}
    assert api.runner.submitted == []
