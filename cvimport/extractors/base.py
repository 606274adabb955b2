"""
Base interface for text extractors.

Defines the contract for pluggable document-to-text implementations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..shared import ExtractedText, PageProgress, SourceFormat, UploadedFile

ProgressCallback = Callable[[PageProgress], None]


class TextExtractor(ABC):
    """
    Abstract base class for text extractors.

    Implementations recover the plain text of one document format. They
    run their blocking decode work off the event loop and report
    incremental progress through the optional callback.
    """

    source_format: SourceFormat = SourceFormat.UNSUPPORTED

    @abstractmethod
    async def extract(
        self,
        upload: UploadedFile,
        progress: Optional[ProgressCallback] = None,
    ) -> ExtractedText:
        """
        Extract the document's plain text.

        Args:
            upload: The uploaded file, already classified by the sniffer
            progress: Called with (current, total) after each unit of work
                when the format supports incremental progress

        Returns:
            ExtractedText with the text and its provenance metadata

        Raises:
            CorruptFile: If the container cannot be read
            EmptyOrInsufficientText: If the document has no text at all
        """
        ...
