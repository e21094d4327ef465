"""
Services package for the Medical Document Parsing API
"""
from .database_service import DatabaseService
from .gemini_service import GeminiService
from .job_service import JobRunner, JobService, JobUpload
from .processing_service import PageImage, ProcessingService
from .recommendation_service import RecommendationService
from .storage_service import StorageService
from .webhook_service import WebhookService

__all__ = [
    'DatabaseService', 'GeminiService', 'JobRunner', 'JobService', 'JobUpload', 'PageImage',
    'ProcessingService', 'RecommendationService', 'StorageService', 'WebhookService',
]
