"""
Extraction service interfaces and implementations.

This module provides interchangeable schema-constrained structuring
services with a registry system.
"""

from .base import ExtractionRequest, ExtractionResponse, ExtractionService, ServiceErrorCode
from .openai_service import LocalModelExtractionService, OpenAIExtractionService
from .rule_based_service import RuleBasedExtractionService
from .service_registry import get_service, list_services, register_service, unregister_service

# Register built-in services
register_service("openai", OpenAIExtractionService)
register_service("local", LocalModelExtractionService)
register_service("rule-based", RuleBasedExtractionService)

__all__ = [
    "ExtractionRequest",
    "ExtractionResponse",
    "ExtractionService",
    "ServiceErrorCode",
    "OpenAIExtractionService",
    "LocalModelExtractionService",
    "RuleBasedExtractionService",
    "register_service",
    "get_service",
    "list_services",
    "unregister_service",
]
