"""
Database service using psycopg for PostgreSQL operations
"""
import psycopg
from psycopg.rows import dict_row
import json
import uuid
from typing import Optional, Dict, Any, List
import logging

from ..models.schemas import ACTIVE_JOB_STATUSES, JobStatus, ProcessingJob, Tenant

logger = logging.getLogger(__name__)

JOB_COLUMNS = """id, tenant_id, status, callback_url, document_id, error_message, created_at, updated_at,
                 completed_at, callback_attempts, callback_last_attempt, callback_succeeded"""

class DatabaseService:
    def __init__(self, connection_string: str):
        self.connection_string = connection_string

    async def get_connection(self):
        """Get database connection"""
        return await psycopg.AsyncConnection.connect(self.connection_string)

    async def create_tables(self):
        """Create all required tables if they don't exist"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                # Create tenants table
                await cur.execute("""
                    CREATE TABLE IF NOT EXISTS tenants (
                        id VARCHAR(64) PRIMARY KEY,
                        name VARCHAR(255) NOT NULL,
                        api_key VARCHAR(255) UNIQUE NOT NULL,
                        is_active BOOLEAN DEFAULT TRUE,
                        webhook_url TEXT,
                        tier VARCHAR(32) DEFAULT 'free',
                        created_at TIMESTAMPTZ DEFAULT NOW()
                    )
                """)

                # Create documents table
                await cur.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        id VARCHAR(64) PRIMARY KEY,
                        tenant_id VARCHAR(64) REFERENCES tenants(id),
                        user_name VARCHAR(255),
                        file_name VARCHAR(500),
                        file_size BIGINT,
                        file_url TEXT,
                        image_urls JSONB,
                        document_type VARCHAR(255),
                        parsed_fields JSONB,
                        structured_data JSONB,
                        confidence_score INTEGER,
                        health_recommendations JSONB,
                        created_at TIMESTAMPTZ DEFAULT NOW()
                    )
                """)

                # Create processing_jobs table
                await cur.execute("""
                    CREATE TABLE IF NOT EXISTS processing_jobs (
                        id VARCHAR(64) PRIMARY KEY,
                        tenant_id VARCHAR(64) NOT NULL REFERENCES tenants(id),
                        status VARCHAR(32) NOT NULL DEFAULT 'pending',
                        callback_url TEXT NOT NULL,
                        document_id VARCHAR(64) REFERENCES documents(id),
                        error_message TEXT,
                        created_at TIMESTAMPTZ DEFAULT clock_timestamp(),
                        updated_at TIMESTAMPTZ,
                        completed_at TIMESTAMPTZ,
                        callback_attempts INTEGER DEFAULT 0,
                        callback_last_attempt TIMESTAMPTZ,
                        callback_succeeded BOOLEAN
                    )
                """)
                await cur.execute("""
                    CREATE INDEX IF NOT EXISTS idx_processing_jobs_tenant_status
                    ON processing_jobs (tenant_id, status, created_at)
                """)

                await conn.commit()
                logger.info("All tables created/verified successfully")

    async def ping(self):
        """Round-trip to the database"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1")
                await cur.fetchone()

    # Documents

    async def insert_document(
        self, user_name: str, file_name: str, file_size: int, file_url: Optional[str],
        image_urls: List[str], document_type: str, parsed_fields: List[Dict[str, Any]],
        structured_data: Dict[str, Any], confidence_score: int,
        health_recommendations: Optional[Dict[str, Any]] = None
    ) -> str:
        """Insert a processed document and return its id"""
        document_id = str(uuid.uuid4())
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """INSERT INTO documents (id, user_name, file_name, file_size, file_url, image_urls,
                       document_type, parsed_fields, structured_data, confidence_score, health_recommendations)
                       VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s) RETURNING id""",
                    (document_id, user_name, file_name, file_size, file_url, json.dumps(image_urls),
                     document_type, json.dumps(parsed_fields), json.dumps(structured_data), confidence_score,
                     json.dumps(health_recommendations) if health_recommendations is not None else None)
                )
                result = await cur.fetchone()
                await conn.commit()
                logger.info(f"Created document record: {result[0]}")
                return result[0]

    async def assign_document_tenant(self, document_id: str, tenant_id: str):
        """Attach a document to the tenant whose job produced it"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "UPDATE documents SET tenant_id = %s WHERE id = %s",
                    (tenant_id, document_id)
                )
                await conn.commit()

    async def get_document(self, document_id: str, tenant_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Fetch a document, optionally restricted to one tenant"""
        query = """SELECT id, tenant_id, user_name, file_name, file_size, file_url, image_urls, document_type,
                          parsed_fields, structured_data, confidence_score, health_recommendations, created_at
                   FROM documents WHERE id = %s"""
        params = [document_id]
        if tenant_id is not None:
            query += " AND tenant_id = %s"
            params.append(tenant_id)
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def list_recent_documents(self, limit: int = 5) -> List[Dict[str, Any]]:
        """Most recently created documents"""
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """SELECT id, file_name, created_at, structured_data
                       FROM documents ORDER BY created_at DESC LIMIT %s""",
                    (limit,)
                )
                return await cur.fetchall()

    async def search_documents(self, query: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Case-insensitive substring search over patient name, file name and document type"""
        pattern = f"%{query}%"
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """SELECT id, user_name, file_name, document_type, confidence_score, created_at
                       FROM documents
                       WHERE user_name ILIKE %s OR file_name ILIKE %s OR document_type ILIKE %s
                       ORDER BY created_at DESC LIMIT %s""",
                    (pattern, pattern, pattern, limit)
                )
                return await cur.fetchall()

    # Tenants

    async def get_tenant_by_api_key(self, api_key: str) -> Optional[Tenant]:
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    "SELECT id, name, api_key, is_active, webhook_url, tier FROM tenants WHERE api_key = %s",
                    (api_key,)
                )
                row = await cur.fetchone()
                return Tenant(**row) if row else None

    # Processing jobs

    async def count_active_jobs(self, tenant_id: str) -> int:
        """Jobs still pending or processing for a tenant"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    "SELECT COUNT(*) FROM processing_jobs WHERE tenant_id = %s AND status = ANY(%s)",
                    (tenant_id, list(ACTIVE_JOB_STATUSES))
                )
                result = await cur.fetchone()
                return result[0]

    async def count_pending_before(self, tenant_id: str, created_at) -> int:
        """Pending jobs of the tenant created strictly before the given time"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """SELECT COUNT(*) FROM processing_jobs
                       WHERE tenant_id = %s AND status = %s AND created_at < %s""",
                    (tenant_id, JobStatus.PENDING.value, created_at)
                )
                result = await cur.fetchone()
                return result[0]

    async def create_job(self, tenant_id: str, callback_url: str) -> ProcessingJob:
        """Insert a new pending job"""
        job_id = str(uuid.uuid4())
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"""INSERT INTO processing_jobs (id, tenant_id, status, callback_url)
                        VALUES (%s, %s, %s, %s) RETURNING {JOB_COLUMNS}""",
                    (job_id, tenant_id, JobStatus.PENDING.value, callback_url)
                )
                row = await cur.fetchone()
                await conn.commit()
                logger.info(f"Created processing job {job_id} for tenant {tenant_id}")
                return ProcessingJob(**row)

    async def get_job(self, job_id: str, tenant_id: str) -> Optional[ProcessingJob]:
        async with await self.get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    f"SELECT {JOB_COLUMNS} FROM processing_jobs WHERE id = %s AND tenant_id = %s",
                    (job_id, tenant_id)
                )
                row = await cur.fetchone()
                return ProcessingJob(**row) if row else None

    async def update_job_status(self, job_id: str, status: str, error_message: Optional[str] = None):
        """Move a job to processing or failed"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """UPDATE processing_jobs
                       SET status = %s, error_message = COALESCE(%s, error_message), updated_at = NOW()
                       WHERE id = %s""",
                    (status, error_message, job_id)
                )
                await conn.commit()
                logger.info(f"Updated job {job_id} status to {status}")

    async def complete_job(self, job_id: str, document_id: str):
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """UPDATE processing_jobs
                       SET status = %s, document_id = %s, completed_at = NOW(), updated_at = NOW()
                       WHERE id = %s""",
                    (JobStatus.COMPLETED.value, document_id, job_id)
                )
                await conn.commit()
                logger.info(f"Job {job_id} completed with document {document_id}")

    async def record_callback_attempt(self, job_id: str, succeeded: bool, error_message: Optional[str] = None):
        """Store the outcome of the single webhook delivery"""
        async with await self.get_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(
                    """UPDATE processing_jobs
                       SET callback_attempts = callback_attempts + 1, callback_last_attempt = NOW(),
                           callback_succeeded = %s, error_message = COALESCE(%s, error_message)
                       WHERE id = %s""",
                    (succeeded, error_message, job_id)
                )
                await conn.commit()
