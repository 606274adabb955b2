"""
PDF text extractor.

Decodes a PDF page by page into a single text blob. Page decoding is the
slow step of the whole import, so it is the one place that reports
incremental progress: one (current, total) event per page, emitted after
that page is decoded and before the next one starts.

The decoding library sits behind the PdfDecoder interface; PypdfDecoder
is the default binding.
"""

from __future__ import annotations

import asyncio
import io
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Callable, List, Optional

from pypdf import PasswordType, PdfReader
from pypdf.errors import DependencyError, FileNotDecryptedError

from ..errors import EncryptedPdf, InvalidPdf, NoExtractableText
from ..logging_utils import LOG
from ..shared import ExtractedText, PageProgress, SourceFormat, UploadedFile, normalize_text_for_processing
from .base import ProgressCallback, TextExtractor


class PdfDecoder(ABC):
    """
    Decoding capability for PDF byte streams.

    extract_pages returns a lazy sequence: len() is the page count and
    indexing decodes a single page's text. A decoder instance serves one
    document; create a new one per call.
    """

    @abstractmethod
    def extract_pages(self, data: bytes) -> Sequence:
        """
        Open a PDF and return its pages as a lazy sequence of text.

        Raises:
            InvalidPdf: If the bytes are not a readable PDF stream
            EncryptedPdf: If the document needs a password
        """
        ...


class _PypdfPages(Sequence):
    def __init__(self, reader: PdfReader):
        self._reader = reader

    def __len__(self) -> int:
        return len(self._reader.pages)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self[i] for i in range(*index.indices(len(self)))]
        return self._reader.pages[index].extract_text() or ""


class PypdfDecoder(PdfDecoder):
    """PdfDecoder backed by pypdf."""

    def extract_pages(self, data: bytes) -> Sequence:
        try:
            reader = PdfReader(io.BytesIO(data))
        except DependencyError as e:
            # AES-encrypted documents need an optional crypto backend to even open.
            raise EncryptedPdf(f"PDF is encrypted and cannot be opened: {e}") from e
        except Exception as e:
            raise InvalidPdf(f"not a valid PDF stream: {e}") from e

        if reader.is_encrypted:
            try:
                result = reader.decrypt("")
            except (DependencyError, FileNotDecryptedError, NotImplementedError) as e:
                raise EncryptedPdf(f"PDF is password-protected: {e}") from e
            if result == PasswordType.NOT_DECRYPTED:
                raise EncryptedPdf("PDF is password-protected")

        try:
            len(reader.pages)
        except FileNotDecryptedError as e:
            raise EncryptedPdf("PDF is password-protected") from e
        except Exception as e:
            raise InvalidPdf(f"not a valid PDF stream: {e}") from e

        return _PypdfPages(reader)


def _decode_page(pages: Sequence, index: int) -> str:
    try:
        return pages[index]
    except FileNotDecryptedError as e:
        raise EncryptedPdf("PDF is password-protected") from e
    except Exception as e:
        raise InvalidPdf(f"page {index + 1} could not be decoded: {e}") from e


class PdfTextExtractor(TextExtractor):
    """
    Text extractor for PDF files.

    Pages are decoded in order, each on a worker thread, and joined with
    a newline.
    """

    source_format = SourceFormat.PDF

    def __init__(self, decoder_factory: Callable[[], PdfDecoder] = PypdfDecoder):
        self._decoder_factory = decoder_factory

    async def extract(
        self,
        upload: UploadedFile,
        progress: Optional[ProgressCallback] = None,
    ) -> ExtractedText:
        started = time.perf_counter()
        decoder = self._decoder_factory()
        pages = await asyncio.to_thread(decoder.extract_pages, upload.data)

        total = len(pages)
        if total == 0:
            raise NoExtractableText("PDF contains no pages")
        LOG.debug("PDF %s: %d page(s)", upload.filename, total)

        texts: List[str] = []
        for index in range(total):
            page_text = await asyncio.to_thread(_decode_page, pages, index)
            texts.append(normalize_text_for_processing(page_text))
            LOG.debug("  page %d/%d: %d chars", index + 1, total, len(page_text))
            if progress is not None:
                progress(PageProgress(current_page=index + 1, total_pages=total))

        text = "\n".join(texts)
        if not text.strip():
            raise NoExtractableText(
                f"no extractable text in {total} page(s); the PDF may be a scanned image"
            )

        return ExtractedText(
            text=text,
            source_format=SourceFormat.PDF,
            part_count=total,
            duration_s=time.perf_counter() - started,
        )


__all__ = ["PdfDecoder", "PypdfDecoder", "PdfTextExtractor"]
