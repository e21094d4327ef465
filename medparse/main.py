"""
FastAPI Medical Document Parsing API
Main application entry point
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import FastAPI, File, Form, Header, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import __version__
from .config import settings
from .exceptions import QueueLimitError, TenantAuthError
from .models.schemas import JobAcceptedResponse, JobStatusResponse, ParseDocumentResponse, TenantDocumentResponse
from .services.database_service import DatabaseService
from .services.gemini_service import GeminiService
from .services.job_service import JobService, JobUpload
from .services.processing_service import PageImage, ProcessingService
from .services.recommendation_service import RecommendationService
from .services.storage_service import StorageService
from .services.webhook_service import WebhookService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize services
db_service = DatabaseService(settings.DATABASE_URL)
storage_service = StorageService(settings.UPLOAD_DIR, settings.PUBLIC_BASE_URL)
gemini_service = GeminiService(settings.GEMINI_API_KEY, settings.GEMINI_MODEL)
recommendation_service = RecommendationService(gemini_service)
processing_service = ProcessingService(
    gemini_service,
    recommendation_service,
    db_service,
    storage_service,
    settings.PROCESSING_TIMEOUT_SECONDS,
    settings.MAX_PDF_PAGES
)
webhook_service = WebhookService(settings.WEBHOOK_TIMEOUT_SECONDS)
job_service = JobService(db_service, processing_service, webhook_service)

# Initialize FastAPI app
app = FastAPI(
    title="Medical Document Parsing API",
    description="Extracts structured medical records from document page images using Gemini vision",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Stored page images are served back from here
app.mount(storage_service.mount_path, StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Every error body carries a single `error` message"""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

@app.on_event("startup")
async def startup_event():
    """Initialize database tables on startup"""
    try:
        await db_service.create_tables()
        logger.info("Database tables initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {str(e)}")
        raise

@app.on_event("shutdown")
async def shutdown_event():
    """Cancel jobs still running in the background"""
    await job_service.runner.shutdown()

@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": "Medical Document Parsing API is running",
        "version": __version__,
        "status": "active"
    }

@app.get("/health")
async def health_check():
    """Health check with database connection test"""
    try:
        await db_service.ping()
        return {
            "status": "healthy",
            "database": "connected",
            "service": "Medical Document Parsing API",
            "timestamp": datetime.now().isoformat()
        }
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "database": "disconnected",
                "error": str(e),
                "timestamp": datetime.now().isoformat()
            }
        )

def failure_message(e: Exception) -> str:
    if isinstance(e, asyncio.TimeoutError):
        return f"Processing exceeded the {processing_service.timeout_seconds:g}s time limit"
    return str(e) or type(e).__name__

# First-party API

@app.post("/api/parse-document", response_model=ParseDocumentResponse)
async def parse_document(
    files: Optional[List[UploadFile]] = File(None),
    originalFileName: Optional[str] = Form(None)
):
    """
    Parse one or more page images into a single stored document

    Args:
        files: Page images, in page order
        originalFileName: Name recorded for the document

    Returns:
        ParseDocumentResponse with the document id and confidence score
    """
    if not files:
        raise HTTPException(status_code=400, detail="No files provided")

    for file in files:
        if file.content_type not in settings.IMAGE_TYPES:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid file type: {file.content_type}. Only PNG and JPEG images are supported"
            )

    try:
        pages = [
            PageImage(data=await file.read(), mime_type=file.content_type, filename=file.filename or "page")
            for file in files
        ]
        file_name = originalFileName or files[0].filename or "document"
        logger.info(f"Processing {len(pages)} page(s) for {file_name}")

        result = await processing_service.process_document(pages, file_name)

        return ParseDocumentResponse(
            id=result.id,
            pagesProcessed=result.pages_processed,
            imageUrls=result.image_urls,
            confidenceScore=result.confidence_score
        )

    except Exception as e:
        message = failure_message(e)
        logger.error(f"Error in parse_document: {message}")
        raise HTTPException(status_code=500, detail=f"Processing failed: {message}")

@app.get("/api/parse-document")
async def get_parsed_document(document_id: Optional[str] = Query(None, alias="id")):
    """Fetch a stored document by id"""
    if not document_id:
        raise HTTPException(status_code=400, detail="Document ID is required")

    try:
        document = await db_service.get_document(document_id)
    except Exception as e:
        logger.error(f"Error fetching document {document_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch document: {str(e)}")

    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    created_at = document.get("created_at")
    return {
        "id": document["id"],
        "fileName": document.get("file_name"),
        "fileSize": document.get("file_size"),
        "fileUrl": document.get("file_url"),
        "uploadedAt": created_at.isoformat() if created_at else None,
        "documentType": document.get("document_type"),
        "fields": document.get("parsed_fields") or [],
        "structuredData": document.get("structured_data"),
        "confidenceScore": document.get("confidence_score"),
        "healthRecommendations": document.get("health_recommendations")
    }

@app.get("/api/documents")
async def list_documents(limit: int = 5):
    """Most recently parsed documents"""
    try:
        rows = await db_service.list_recent_documents(limit)
    except Exception as e:
        logger.error(f"Error listing documents: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch documents: {str(e)}")

    documents = []
    for row in rows:
        created_at = row.get("created_at")
        documents.append({
            "id": row["id"],
            "file_name": row.get("file_name"),
            "created_at": created_at.isoformat() if created_at else None,
            "structured_data": row.get("structured_data")
        })
    return {"documents": documents}

@app.get("/api/search-documents")
async def search_documents(query: Optional[str] = None):
    """Search documents by patient name, file name or document type"""
    if not query or not query.strip():
        return {"documents": []}

    try:
        rows = await db_service.search_documents(query.strip())
    except Exception as e:
        logger.error(f"Error searching documents: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Search failed: {str(e)}")

    documents = []
    for row in rows:
        created_at = row.get("created_at")
        documents.append({
            "id": row["id"],
            "patientName": row.get("user_name"),
            "fileName": row.get("file_name"),
            "documentType": row.get("document_type"),
            "confidenceScore": row.get("confidence_score"),
            "uploadedAt": created_at.isoformat() if created_at else None
        })
    return {"documents": documents}

# Tenant API

async def authenticate_tenant(api_key: Optional[str]):
    try:
        return await job_service.authenticate(api_key)
    except TenantAuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

@app.post("/api/v1/parse", status_code=202, response_model=JobAcceptedResponse)
async def submit_parse_job(
    file: Optional[UploadFile] = File(None),
    callback_url: Optional[str] = Form(None),
    x_api_key: Optional[str] = Header(None)
):
    """
    Queue a document for background parsing

    Args:
        file: PDF or image to parse
        callback_url: Webhook receiving the result; defaults to the tenant's webhook

    Returns:
        JobAcceptedResponse with the job id and queue position
    """
    tenant = await authenticate_tenant(x_api_key)

    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    callback = callback_url or tenant.webhook_url
    if not callback:
        raise HTTPException(status_code=400, detail="No callback URL provided")

    if file.content_type not in settings.TENANT_FILE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {file.content_type}. Supported types: {', '.join(settings.TENANT_FILE_TYPES)}"
        )

    # Read the file before a job exists so a failed upload holds no queue slot
    try:
        upload = JobUpload(
            filename=file.filename or "document",
            content_type=file.content_type,
            content=await file.read()
        )
    except Exception as e:
        logger.error(f"Error reading upload for tenant {tenant.name}: {str(e)}")
        raise HTTPException(status_code=400, detail=f"Failed to read uploaded file: {str(e)}")

    try:
        job, queue_position, queue_limit = await job_service.admit(tenant, callback)
    except QueueLimitError as e:
        return JSONResponse(
            status_code=429,
            content={
                "error": "Queue limit exceeded",
                "message": str(e),
                "queue_limit": e.limit,
                "current_queue_size": e.current,
                "tier": e.tier
            }
        )
    except Exception as e:
        logger.error(f"Error creating job for tenant {tenant.name}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to create job: {str(e)}")

    job_service.submit(job, tenant, upload)

    return JobAcceptedResponse(
        job_id=job.id,
        callback_url=callback,
        queue_position=queue_position,
        queue_limit=queue_limit
    )

@app.get("/api/v1/parse", response_model=JobStatusResponse)
async def get_job_status(job_id: Optional[str] = None, x_api_key: Optional[str] = Header(None)):
    """Poll a tenant job"""
    tenant = await authenticate_tenant(x_api_key)

    if not job_id:
        raise HTTPException(status_code=400, detail="job_id is required")

    try:
        status = await job_service.get_status(tenant, job_id)
    except Exception as e:
        logger.error(f"Error fetching job {job_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch job status: {str(e)}")

    if status is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return status

@app.get("/api/v1/documents", response_model=TenantDocumentResponse)
async def get_tenant_document(
    document_id: Optional[str] = Query(None, alias="id"),
    x_api_key: Optional[str] = Header(None)
):
    """Fetch a document produced by one of the tenant's jobs"""
    tenant = await authenticate_tenant(x_api_key)

    if not document_id:
        raise HTTPException(status_code=400, detail="Document ID is required")

    try:
        document = await job_service.get_document(tenant, document_id)
    except Exception as e:
        logger.error(f"Error fetching document {document_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to fetch document: {str(e)}")

    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return document

def run():
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )

if __name__ == "__main__":
    run()
