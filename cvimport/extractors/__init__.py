"""
Text extraction interfaces and implementations.

This module provides pluggable document-to-text extractors, one per
supported source format.
"""

from ..shared import SourceFormat
from .base import ProgressCallback, TextExtractor
from .docx_extractor import DocxTextExtractor, docx_bytes_to_text
from .extractor_registry import (
    get_extractor,
    list_extractors,
    register_extractor,
    unregister_extractor,
)
from .pdf_extractor import PdfDecoder, PdfTextExtractor, PypdfDecoder

# Register built-in extractors
register_extractor(SourceFormat.PDF, PdfTextExtractor)
register_extractor(SourceFormat.DOCX, DocxTextExtractor)

__all__ = [
    "TextExtractor",
    "ProgressCallback",
    "PdfDecoder",
    "PypdfDecoder",
    "PdfTextExtractor",
    "DocxTextExtractor",
    "docx_bytes_to_text",
    "register_extractor",
    "get_extractor",
    "list_extractors",
    "unregister_extractor",
]
