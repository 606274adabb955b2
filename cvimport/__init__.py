# cvimport/__init__.py

from .canonicalizer import canonicalize
from .document import CVDocument
from .errors import CVImportError
from .models import CanonicalDraft
from .services import ExtractionService, get_service
from .session import ImportFlow, ImportSession, SessionFailure
from .shared import PageProgress, ProgressEvent, SessionState, UploadedFile, load_upload
from .sniffer import sniff_format
from .verification import SchemaVerifier, load_cv_schema

__all__ = [
    "ImportSession",
    "ImportFlow",
    "SessionFailure",
    "SessionState",
    "ProgressEvent",
    "PageProgress",
    "UploadedFile",
    "load_upload",
    "CanonicalDraft",
    "CVDocument",
    "CVImportError",
    "ExtractionService",
    "get_service",
    "canonicalize",
    "sniff_format",
    "SchemaVerifier",
    "load_cv_schema",
]
