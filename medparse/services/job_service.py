"""
Tenant job queue: authentication, admission, detached execution and status

Jobs move pending -> processing -> completed | failed. The request handler only
admits and submits; execution runs as a separate asyncio task and reports its
terminal state through exactly one webhook.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import settings
from ..exceptions import QueueLimitError, TenantAuthError
from ..models.schemas import (
    JobStatus,
    JobStatusResponse,
    ProcessingJob,
    Tenant,
    TenantDocumentResponse,
    Tier,
)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class JobUpload:
    """File received with a tenant parse request"""
    filename: str
    content_type: str
    content: bytes

class JobRunner:
    """Runs coroutines as tasks detached from the request that created them"""

    def __init__(self):
        self._tasks = set()

    @property
    def active(self) -> int:
        return len(self._tasks)

    def submit(self, coro, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")

    async def drain(self):
        """Wait for every submitted task to finish"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self):
        """Cancel outstanding tasks"""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} background task(s) on shutdown")

class JobService:
    def __init__(self, db_service, processing_service, webhook_service, runner: Optional[JobRunner] = None,
                 queue_limits: Optional[dict] = None):
        self.db_service = db_service
        self.processing_service = processing_service
        self.webhook_service = webhook_service
        self.runner = runner or JobRunner()
        self.queue_limits = queue_limits or settings.QUEUE_LIMITS

    async def authenticate(self, api_key: Optional[str]) -> Tenant:
        """Resolve the tenant for an API key"""
        if not api_key:
            raise TenantAuthError("Missing API key", 401)
        tenant = await self.db_service.get_tenant_by_api_key(api_key)
        if tenant is None:
            raise TenantAuthError("Invalid API key", 401)
        if not tenant.is_active:
            raise TenantAuthError("Tenant account is inactive", 403)
        return tenant

    def queue_limit(self, tier: str) -> int:
        return self.queue_limits.get(tier, self.queue_limits[Tier.FREE.value])

    async def admit(self, tenant: Tenant, callback_url: str) -> Tuple[ProcessingJob, int, int]:
        """
        Create a pending job if the tenant is under its tier ceiling.

        Returns the job, its queue position and the tier's limit. The count and
        the insert are separate statements, so concurrent submissions may
        briefly overrun the ceiling.
        """
        limit = self.queue_limit(tenant.tier)
        active = await self.db_service.count_active_jobs(tenant.id)
        if active >= limit:
            logger.warning(f"Tenant {tenant.name} at queue limit ({active}/{limit}, tier {tenant.tier})")
            raise QueueLimitError(tenant.tier, limit, active)

        job = await self.db_service.create_job(tenant.id, callback_url)
        position = await self.db_service.count_pending_before(tenant.id, job.created_at)
        logger.info(f"Created job {job.id} for tenant {tenant.name} (queue position {position})")
        return job, position, limit

    def submit(self, job: ProcessingJob, tenant: Tenant, upload: JobUpload) -> asyncio.Task:
        """Hand the job to the runner and return immediately"""
        return self.runner.submit(
            self.execute_job(job.id, tenant.id, job.callback_url, upload),
            name=f"job-{job.id}",
        )

    async def execute_job(self, job_id: str, tenant_id: str, callback_url: str, upload: JobUpload):
        """Run the pipeline for one job and deliver its terminal webhook; never raises"""
        try:
            await self.db_service.update_job_status(job_id, JobStatus.PROCESSING.value)
            logger.info(f"Processing job {job_id}...")

            pages = await self.processing_service.load_pages(upload.content, upload.content_type, upload.filename)
            result = await self.processing_service.process_document(pages, upload.filename)

            await self.db_service.assign_document_tenant(result.id, tenant_id)
            await self.db_service.complete_job(job_id, result.id)
        except asyncio.TimeoutError:
            message = f"Processing exceeded the {self.processing_service.timeout_seconds:g}s time limit"
            logger.error(f"Processing failed for job {job_id}: {message}")
            await self._fail(job_id, callback_url, message)
            return
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(f"Processing failed for job {job_id}: {message}")
            await self._fail(job_id, callback_url, message)
            return

        logger.info(f"Job {job_id} completed. Triggering webhook...")
        delivered = await self.webhook_service.deliver(
            callback_url, job_id, result.id, JobStatus.COMPLETED.value,
            {
                "document_id": result.id,
                "confidence_score": result.confidence_score,
                "pages_processed": result.pages_processed,
            },
        )
        await self._record_callback(job_id, delivered, None if delivered else "Webhook callback failed")

    async def _fail(self, job_id: str, callback_url: str, message: str):
        try:
            await self.db_service.update_job_status(job_id, JobStatus.FAILED.value, error_message=message)
        except Exception as e:
            logger.error(f"Could not mark job {job_id} as failed: {str(e)}")

        delivered = await self.webhook_service.deliver(
            callback_url, job_id, "", JobStatus.FAILED.value, {"error": message}
        )
        await self._record_callback(job_id, delivered)

    async def _record_callback(self, job_id: str, delivered: bool, error_message: Optional[str] = None):
        if not delivered:
            logger.warning(f"Webhook callback failed for job {job_id}")
        try:
            await self.db_service.record_callback_attempt(job_id, delivered, error_message)
        except Exception as e:
            logger.error(f"Could not record webhook attempt for job {job_id}: {str(e)}")

    async def get_status(self, tenant: Tenant, job_id: str) -> Optional[JobStatusResponse]:
        """Current job state; queue position only while still pending"""
        job = await self.db_service.get_job(job_id, tenant.id)
        if job is None:
            return None

        queue_position = 0
        if job.status == JobStatus.PENDING:
            queue_position = await self.db_service.count_pending_before(tenant.id, job.created_at)

        return JobStatusResponse(
            job_id=job.id,
            status=job.status.value,
            document_id=job.document_id,
            error_message=job.error_message,
            created_at=job.created_at,
            completed_at=job.completed_at,
            callback_attempts=job.callback_attempts,
            queue_position=queue_position,
        )

    async def get_document(self, tenant: Tenant, document_id: str) -> Optional[TenantDocumentResponse]:
        """Document projection, only if it belongs to the tenant"""
        document = await self.db_service.get_document(document_id, tenant_id=tenant.id)
        if document is None:
            return None
        return TenantDocumentResponse(
            id=document["id"],
            patient_name=document.get("user_name"),
            file_name=document.get("file_name"),
            document_type=document.get("document_type"),
            confidence_score=document.get("confidence_score"),
            created_at=document.get("created_at"),
            fields=document.get("parsed_fields") or [],
            structured_data=document.get("structured_data"),
        )
