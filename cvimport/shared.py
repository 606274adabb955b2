"""
Shared models and text utilities.

Defines the data structures that travel between pipeline stages
(uploaded file, extracted text, progress events, session states) and the
text normalization and prompt loading helpers used across extraction and
structuring.
"""

from __future__ import annotations

import asyncio
import re

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Union

from .logging_utils import LOG

# ------------------------- Models -------------------------

@dataclass(frozen=True)
class VerificationResult:
    ok: bool
    errors: List[str]
    warnings: List[str]


class SourceFormat(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    UNSUPPORTED = "unsupported"


class SessionState(str, Enum):
    Idle = "idle"
    ExtractingText = "extracting-text"
    ExtractingStructure = "extracting-structure"
    ReadyForReview = "ready-for-review"
    Applied = "applied"
    Discarded = "discarded"
    Failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.Applied, SessionState.Discarded, SessionState.Failed)


@dataclass(frozen=True)
class UploadedFile:
    """
    Immutable upload: raw bytes plus the declared file name and MIME type.

    Lives for one import attempt only and is never persisted.
    """
    data: bytes
    filename: str
    mime_type: Optional[str] = None

    @property
    def extension(self) -> str:
        return Path(self.filename or "").suffix.lower()

    @property
    def size(self) -> int:
        return len(self.data)


async def load_upload(path: Path, mime_type: Optional[str] = None) -> UploadedFile:
    """Read a file from disk without blocking the event loop."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Document not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path must be a file: {path}")
    data = await asyncio.to_thread(path.read_bytes)
    return UploadedFile(data=data, filename=path.name, mime_type=mime_type)


@dataclass(frozen=True)
class ExtractedText:
    text: str
    source_format: SourceFormat
    part_count: int
    duration_s: float = 0.0

    @property
    def length(self) -> int:
        return len(self.text.strip())


@dataclass(frozen=True)
class PageProgress:
    current_page: int
    total_pages: int

    def as_dict(self) -> dict[str, int]:
        return {"currentPage": self.current_page, "totalPages": self.total_pages}


@dataclass(frozen=True)
class ProgressEvent:
    """
    One entry of the progress channel.

    detail is a PageProgress while PDF pages are decoded, the session's
    failure record on the failure event, and None for plain transitions.
    """
    stage: SessionState
    detail: Optional[Union[PageProgress, Any]] = None

    @property
    def is_page_progress(self) -> bool:
        return isinstance(self.detail, PageProgress)


# ------------------------- Text helpers -------------------------

_WS_RE = re.compile(r"\s+")

def _strip_invalid_xml_1_0_chars(s: str) -> str:
    """
    Remove characters invalid in XML 1.0.
    Valid:
      #x9 | #xA | #xD |
      [#x20-#xD7FF] |
      [#xE000-#xFFFD] |
      [#x10000-#x10FFFF]
    """
    out: List[str] = []
    for ch in s:
        cp = ord(ch)
        if (
            cp == 0x9
            or cp == 0xA
            or cp == 0xD
            or (0x20 <= cp <= 0xD7FF)
            or (0xE000 <= cp <= 0xFFFD)
            or (0x10000 <= cp <= 0x10FFFF)
        ):
            out.append(ch)
    return "".join(out)

def normalize_text_for_processing(s: str) -> str:
    """
    Normalize what we consider "text":
    - convert NBSP to normal space
    - replace soft hyphen with real hyphen
    - normalize newlines
    - strip control characters that cannot travel in JSON/XML payloads
    """
    s = s.replace("\u00A0", " ")
    s = s.replace("\u00AD", "-")  # preserve "high-quality"
    s = s.replace("\r\n", "\n").replace("\r", "\n")
    s = _strip_invalid_xml_1_0_chars(s)
    return s

def clean_text(text: str) -> str:
    """Collapse whitespace into single spaces."""
    text = normalize_text_for_processing(text)
    text = _WS_RE.sub(" ", text)
    return text.strip()


# ---------------------- Prompt Loading ----------------------

_SERVICE_PROMPTS_DIR = Path(__file__).parent / "services" / "prompts"


def load_prompt(prompt_name: str) -> Optional[str]:
    """
    Load a prompt template from a Markdown file.

    Args:
        prompt_name: Name of the prompt file in cvimport/services/prompts/
            (without .md extension)

    Returns:
        The prompt text, or None if the file doesn't exist or can't be read

    Example:
        >>> system = load_prompt("cv_extraction_system")
        >>> if system:
        ...     print(system[:50])
    """
    prompt_path = _SERVICE_PROMPTS_DIR / f"{prompt_name}.md"
    try:
        return prompt_path.read_text(encoding="utf-8")
    except OSError as e:
        LOG.error("Failed to read prompt %s: %s", prompt_path, e)
        return None


def format_prompt(prompt_name: str, **kwargs) -> Optional[str]:
    """
    Load a prompt template and format it with the provided variables.

    Args:
        prompt_name: Name of the prompt file (without .md extension)
        **kwargs: Variables to substitute in the prompt template

    Returns:
        The formatted prompt text, or None if the file doesn't exist or can't be formatted
    """
    template = load_prompt(prompt_name)
    if template is None:
        return None

    try:
        return template.format(**kwargs)
    except (KeyError, IndexError, ValueError) as e:
        LOG.error("Failed to format prompt %s: %s", prompt_name, e)
        return None
