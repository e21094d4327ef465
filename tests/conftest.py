"""
Pytest configuration and shared fixtures for testing.

Nothing here touches the network, PostgreSQL or Gemini: the store is an
in-memory stand-in for DatabaseService and the model client is an AsyncMock.
"""
import json
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from medparse.models.extraction import PageExtraction
from medparse.models.schemas import ACTIVE_JOB_STATUSES, JobStatus, ProcessingJob, Tenant


class InMemoryStore:
    """Implements the DatabaseService coroutines used by the services"""

    def __init__(self):
        self.tenants = {}
        self.documents = {}
        self.jobs = {}
        self._clock = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(milliseconds=1)
        return self._clock

    def add_tenant(self, name="Acme Clinic", api_key="key-acme", tier="free", is_active=True, webhook_url=None):
        tenant = Tenant(
            id=f"tenant-{len(self.tenants) + 1}",
            name=name,
            api_key=api_key,
            is_active=is_active,
            webhook_url=webhook_url,
            tier=tier,
        )
        self.tenants[api_key] = tenant
        return tenant

    async def create_tables(self):
        pass

    async def ping(self):
        pass

    async def insert_document(self, **fields) -> str:
        document_id = str(uuid.uuid4())
        self.documents[document_id] = {"id": document_id, "tenant_id": None, "created_at": self._tick(), **fields}
        return document_id

    async def assign_document_tenant(self, document_id, tenant_id):
        self.documents[document_id]["tenant_id"] = tenant_id

    async def get_document(self, document_id, tenant_id=None):
        document = self.documents.get(document_id)
        if document is None:
            return None
        if tenant_id is not None and document["tenant_id"] != tenant_id:
            return None
        return document

    async def list_recent_documents(self, limit=5):
        rows = sorted(self.documents.values(), key=lambda d: d["created_at"], reverse=True)
        return rows[:limit]

    async def search_documents(self, query, limit=50):
        needle = query.lower()
        rows = [
            d for d in self.documents.values()
            if any(needle in (d.get(column) or "").lower() for column in ("user_name", "file_name", "document_type"))
        ]
        return sorted(rows, key=lambda d: d["created_at"], reverse=True)[:limit]

    async def get_tenant_by_api_key(self, api_key):
        return self.tenants.get(api_key)

    async def count_active_jobs(self, tenant_id):
        return sum(
            1 for job in self.jobs.values()
            if job.tenant_id == tenant_id and job.status.value in ACTIVE_JOB_STATUSES
        )

    async def count_pending_before(self, tenant_id, created_at):
        return sum(
            1 for job in self.jobs.values()
            if job.tenant_id == tenant_id and job.status == JobStatus.PENDING and job.created_at < created_at
        )

    async def create_job(self, tenant_id, callback_url):
        job = ProcessingJob(id=str(uuid.uuid4()), tenant_id=tenant_id, callback_url=callback_url, created_at=self._tick())
        self.jobs[job.id] = job
        return job

    async def get_job(self, job_id, tenant_id):
        job = self.jobs.get(job_id)
        if job is None or job.tenant_id != tenant_id:
            return None
        return job

    def _update_job(self, job_id, **changes):
        self.jobs[job_id] = self.jobs[job_id].model_copy(update=changes)

    async def update_job_status(self, job_id, status, error_message=None):
        changes = {"status": JobStatus(status), "updated_at": self._tick()}
        if error_message is not None:
            changes["error_message"] = error_message
        self._update_job(job_id, **changes)

    async def complete_job(self, job_id, document_id):
        now = self._tick()
        self._update_job(job_id, status=JobStatus.COMPLETED, document_id=document_id, completed_at=now, updated_at=now)

    async def record_callback_attempt(self, job_id, succeeded, error_message=None):
        job = self.jobs[job_id]
        changes = {
            "callback_attempts": job.callback_attempts + 1,
            "callback_last_attempt": self._tick(),
            "callback_succeeded": succeeded,
        }
        if error_message is not None:
            changes["error_message"] = error_message
        self._update_job(job_id, **changes)


class RecordingWebhooks:
    """WebhookService stand-in that remembers every delivery"""

    def __init__(self, succeed=True):
        self.succeed = succeed
        self.calls = []

    async def deliver(self, callback_url, job_id, document_id, status, data=None):
        self.calls.append({
            "callback_url": callback_url,
            "job_id": job_id,
            "document_id": document_id,
            "status": status,
            "data": data,
        })
        return self.succeed


class MemoryStorage:
    """StorageService stand-in returning predictable URLs"""

    mount_path = "/uploads"

    def __init__(self):
        self.blobs = []

    async def upload(self, filename, data, content_type):
        self.blobs.append((filename, data, content_type))
        return f"http://testserver/uploads/documents/{len(self.blobs)}-{filename}"


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def webhooks():
    return RecordingWebhooks()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def model_response():
    """Build a fake Gemini response object"""
    def build(text):
        return SimpleNamespace(text=text)
    return build


@pytest.fixture
def fake_genai_client():
    """Stand-in for genai.Client; set generate_content.side_effect/return_value per test"""
    generate_content = AsyncMock()
    return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))


@pytest.fixture
def page_json():
    """Serialize a camelCase page extraction the way the model returns it"""
    def build(**blocks):
        return json.dumps(blocks)
    return build


@pytest.fixture
def make_page():
    """Validate a camelCase dict into a PageExtraction"""
    def build(**blocks):
        return PageExtraction.model_validate(blocks)
    return build


@pytest.fixture
def discharge_page(make_page):
    """A well-filled discharge summary page"""
    return make_page(
        patientInfo={"fullName": "Jane Roe", "age": "54", "gender": "Female", "medicalRecordNumber": "MR-1001"},
        documentInfo={"type": "Discharge Summary", "reportDate": "2024-03-02"},
        providerInfo={"hospitalName": "City General", "doctorName": "Dr. Patel", "contactNumbers": ["555-0100"]},
        clinicalData={
            "diagnosis": "Community acquired pneumonia",
            "medications": [{"name": "Amoxicillin", "dosage": "500 mg", "frequency": "TID"}],
            "vitalSigns": {"bloodPressure": "128/82", "heartRate": "88", "temperature": None},
            "allergies": ["Penicillin"],
        },
        treatmentPlan={"dietaryAdvice": "Soft diet", "followUpDate": "2024-03-16"},
        documentSummary="Discharge after pneumonia treatment",
        extractionMetadata={"confidenceScore": 85},
    )
