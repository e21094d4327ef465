"""
Pydantic models for the tenant API, job records and HTTP responses
"""
from enum import Enum
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime

class Tier(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PRO = "pro"
    ENTERPRISE = "enterprise"

class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.PROCESSING.value)

class Tenant(BaseModel):
    """API tenant, read-only from the service's point of view"""
    id: str
    name: str
    api_key: str
    is_active: bool = True
    webhook_url: Optional[str] = None
    tier: str = Tier.FREE.value

class ProcessingJob(BaseModel):
    """One asynchronous tenant parse request"""
    id: str
    tenant_id: str
    status: JobStatus = JobStatus.PENDING
    callback_url: str
    document_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    callback_attempts: int = 0
    callback_last_attempt: Optional[datetime] = None
    callback_succeeded: Optional[bool] = None

class ParseDocumentResponse(BaseModel):
    """Response of the synchronous first-party parse endpoint"""
    id: str
    pagesProcessed: int
    imageUrls: List[str]
    confidenceScore: int

class JobAcceptedResponse(BaseModel):
    """Response returned once a tenant job is queued"""
    job_id: str
    status: str = JobStatus.PENDING.value
    message: str = "Document processing started. You will receive a callback when complete."
    callback_url: str
    queue_position: int
    queue_limit: int

class JobStatusResponse(BaseModel):
    """Tenant job status polling response"""
    job_id: str
    status: str
    document_id: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    callback_attempts: int = 0
    queue_position: int = 0

class TenantDocumentResponse(BaseModel):
    """Tenant-scoped projection of a stored document"""
    id: str
    patient_name: Optional[str] = None
    file_name: Optional[str] = None
    document_type: Optional[str] = None
    confidence_score: Optional[int] = None
    created_at: Optional[datetime] = None
    fields: List[Dict[str, Any]] = []
    structured_data: Optional[Dict[str, Any]] = None

class WebhookPayload(BaseModel):
    """Body POSTed to a tenant callback URL"""
    job_id: str
    document_id: str
    status: str
    timestamp: str
    data: Optional[Dict[str, Any]] = None
