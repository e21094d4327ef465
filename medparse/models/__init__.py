"""
Models package for the Medical Document Parsing API
"""
from .extraction import PageExtraction, PageResult
from .document import HealthRecommendations, MergedDocument, ParsedField, ProcessedDocument
from .schemas import JobStatus, ProcessingJob, Tenant, Tier

__all__ = [
    'PageExtraction', 'PageResult', 'MergedDocument', 'ParsedField', 'HealthRecommendations',
    'ProcessedDocument', 'JobStatus', 'ProcessingJob', 'Tenant', 'Tier',
]
