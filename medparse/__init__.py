"""
Medical document parsing service: multi-page vision extraction, merge,
confidence scoring and a multi-tenant webhook API
"""

__version__ = "1.0.0"
