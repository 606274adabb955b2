"""
Logging helpers for cvimport.

Defines the package logger and simple utilities for configuring
console and optional file logging.
"""

from __future__ import annotations

import logging
from typing import List, Optional

LOG = logging.getLogger("cvimport")

# Verbosity levels
VERBOSITY_QUIET = 0    # Minimal output (default)
VERBOSITY_NORMAL = 1   # Stage transitions
VERBOSITY_VERBOSE = 2  # Page-by-page progress and service details

def setup_logging(debug: bool, log_file: Optional[str] = None, verbosity: int = VERBOSITY_QUIET) -> None:
    """
    Setup logging with verbosity control.

    Args:
        debug: Debug flag (overrides verbosity to VERBOSITY_VERBOSE)
        log_file: Optional log file path
        verbosity: Verbosity level (0=quiet, 1=normal, 2=verbose)
    """
    if debug:
        verbosity = VERBOSITY_VERBOSE

    if verbosity >= VERBOSITY_VERBOSE:
        level = logging.DEBUG
    elif verbosity >= VERBOSITY_NORMAL:
        level = logging.INFO
    else:
        level = logging.WARNING

    # Root passes DEBUG through whenever a log file is attached.
    root_level = logging.DEBUG if log_file else level

    # Handlers may already be installed (e.g., by pytest); only retune them.
    if logging.root.handlers:
        for handler in logging.root.handlers:
            if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
                handler.setFormatter(_console_formatter(verbosity))
        logging.root.setLevel(root_level)
    else:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(_console_formatter(verbosity))
        logging.basicConfig(level=root_level, handlers=[console], force=True)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)  # always full detail in file
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logging.root.addHandler(file_handler)

    # Suppress noisy third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("pypdf").setLevel(logging.WARNING)


def _console_formatter(verbosity: int) -> logging.Formatter:
    if verbosity >= VERBOSITY_NORMAL:
        return logging.Formatter("%(levelname)s: %(message)s")
    return logging.Formatter("%(message)s")


def fmt_failure(kind: str, message: str, recovery: str) -> str:
    """
    Compact one-line failure string for the session log.
    """
    parts: List[str] = [kind]
    if message:
        parts.append(message)
    if recovery and recovery != "none":
        parts.append(f"next: {recovery}")
    return " | ".join(parts)
