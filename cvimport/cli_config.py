"""
CLI configuration data structures.

Defines ImportConfig, the configuration gathered in phase 1 and passed
through the three-phase CLI architecture.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .session import MIN_TEXT_LENGTH

DEFAULT_SERVICE = "openai"


@dataclass
class ImportConfig:
    """Configuration gathered from user input."""

    source: Path  # Input .pdf or .docx file
    output: Optional[Path] = None  # Output JSON (stdout when not set)

    # Extraction service
    service: str = DEFAULT_SERVICE
    model: Optional[str] = None
    base_url: Optional[str] = None

    min_text_length: int = MIN_TEXT_LENGTH

    # Execution settings
    debug: bool = False
    verbosity: int = 0
    log_file: Optional[str] = None

    # Extra keyword arguments for the service constructor
    service_options: Dict[str, Any] = field(default_factory=dict)

    def service_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = dict(self.service_options)
        if self.model:
            kwargs["model"] = self.model
        if self.base_url:
            kwargs["base_url"] = self.base_url
        return kwargs
