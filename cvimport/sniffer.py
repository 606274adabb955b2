"""
Input format detection.

Classifies an upload as PDF or DOCX from its declared name and, for DOCX,
confirms the ZIP local-file-header signature before any archive reader
is involved.
"""

from __future__ import annotations

from pathlib import Path

from .errors import CorruptFile, UnsupportedFormat
from .shared import SourceFormat, UploadedFile

ZIP_SIGNATURE = b"PK"

_EXTENSIONS = {
    ".pdf": SourceFormat.PDF,
    ".docx": SourceFormat.DOCX,
}


def classify(filename: str) -> SourceFormat:
    """Map a declared file name to a SourceFormat without raising."""
    return _EXTENSIONS.get(Path(filename or "").suffix.lower(), SourceFormat.UNSUPPORTED)


def sniff_format(upload: UploadedFile) -> SourceFormat:
    """
    Return the format an upload must be decoded with.

    Raises:
        UnsupportedFormat: the name does not end in .pdf or .docx
        CorruptFile: a .docx whose bytes do not start with the ZIP signature
    """
    fmt = classify(upload.filename)
    if fmt is SourceFormat.UNSUPPORTED:
        raise UnsupportedFormat(
            f"unsupported file type {upload.extension or '(none)'}: only .pdf and .docx can be imported"
        )
    if fmt is SourceFormat.DOCX and upload.data[:2] != ZIP_SIGNATURE:
        raise CorruptFile(f"corrupt or renamed file: {upload.filename} is not a DOCX archive")
    return fmt


__all__ = ["classify", "sniff_format", "ZIP_SIGNATURE"]
