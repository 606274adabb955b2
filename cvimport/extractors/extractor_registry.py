"""
Extractor registry mapping source formats to text extractors.

The session looks up the extractor for a sniffed format here, which lets
callers swap in another implementation (e.g. a different PDF decoder)
without touching the pipeline.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Type

from ..shared import SourceFormat
from .base import TextExtractor


# Global extractor registry
_EXTRACTOR_REGISTRY: Dict[SourceFormat, Type[TextExtractor]] = {}


def register_extractor(source_format: SourceFormat, extractor_class: Type[TextExtractor]) -> None:
    """
    Register an extractor class for a source format.

    Args:
        source_format: The format the extractor handles
        extractor_class: The extractor class to register
    """
    _EXTRACTOR_REGISTRY[SourceFormat(source_format)] = extractor_class


def get_extractor(source_format: SourceFormat, **kwargs) -> Optional[TextExtractor]:
    """
    Get an extractor instance for a format.

    Args:
        source_format: The sniffed source format
        **kwargs: Arguments to pass to the extractor constructor

    Returns:
        Extractor instance, or None if no extractor handles the format
    """
    extractor_class = _EXTRACTOR_REGISTRY.get(SourceFormat(source_format))
    if extractor_class:
        return extractor_class(**kwargs)
    return None


def list_extractors() -> List[Dict[str, str]]:
    """
    List all registered extractors with their descriptions.

    Returns:
        List of dicts with 'format' and 'description' keys
    """
    extractors = []
    for fmt, extractor_class in _EXTRACTOR_REGISTRY.items():
        description = extractor_class.__doc__ or "No description available"
        description = description.strip().split('\n')[0]
        extractors.append({
            'format': fmt.value,
            'description': description
        })
    return sorted(extractors, key=lambda x: x['format'])


def unregister_extractor(source_format: SourceFormat) -> None:
    """
    Remove the extractor registered for a format.
    """
    _EXTRACTOR_REGISTRY.pop(SourceFormat(source_format), None)


__all__ = [
    "register_extractor",
    "get_extractor",
    "list_extractors",
    "unregister_extractor",
]
