"""
Webhook delivery for terminal tenant job transitions

Exactly one POST per call; the caller records the outcome, nothing is retried.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from ..models.schemas import WebhookPayload

logger = logging.getLogger(__name__)

class WebhookService:
    def __init__(self, timeout: float = settings.WEBHOOK_TIMEOUT_SECONDS, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, job_id: str, document_id: str, status: str, data: Optional[Dict[str, Any]] = None) -> WebhookPayload:
        return WebhookPayload(
            job_id=job_id,
            document_id=document_id or "",
            status=status,
            timestamp=datetime.now(timezone.utc).isoformat(),
            data=data,
        )

    async def deliver(self, callback_url: str, job_id: str, document_id: str, status: str,
                      data: Optional[Dict[str, Any]] = None) -> bool:
        """POST the job outcome; True only for a 2xx response"""
        payload = self.build_payload(job_id, document_id, status, data)
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(self.timeout), transport=self.transport) as client:
                response = await client.post(
                    callback_url,
                    json=payload.model_dump(),
                    headers={"X-Webhook-Event": settings.WEBHOOK_EVENT},
                )
            if response.is_success:
                logger.info(f"Webhook delivered for job {job_id} ({response.status_code})")
                return True
            logger.warning(f"Webhook for job {job_id} rejected with status {response.status_code}")
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Webhook callback failed for job {job_id}: {str(e)}")
            return False
