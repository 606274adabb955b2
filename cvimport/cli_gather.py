"""
CLI Phase 1: Gather user requirements.

Parses command-line arguments and returns ImportConfig dataclass.
No side effects - just parsing and conversion (apart from --list-services and
--list-extractors, which print and exit).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .cli_config import DEFAULT_SERVICE, ImportConfig
from .extractors import list_extractors
from .services import list_services
from .session import MIN_TEXT_LENGTH


def _handle_list_command(what: str) -> None:
    """Print the registered components of one kind."""
    if what == "services":
        print("\nAvailable Services:")
        print("=" * 60)
        for service in list_services():
            print(f"\n  {service['name']}")
            print(f"    {service['description']}")
    elif what == "extractors":
        print("\nAvailable Extractors:")
        print("=" * 60)
        for extractor in list_extractors():
            print(f"\n  {extractor['format']}")
            print(f"    {extractor['description']}")
    print()


def gather_user_requirements(argv: Optional[List[str]] = None) -> ImportConfig:
    """
    Phase 1: Parse command-line arguments and return user configuration.

    No side effects - just parsing and conversion to ImportConfig.
    """
    parser = argparse.ArgumentParser(
        prog="cvimport",
        description="Import a CV (.pdf or .docx) into a structured, reviewable JSON draft.",
        epilog="""
Examples:
  Import a PDF with the default OpenAI service:
    OPENAI_API_KEY=... cvimport resume.pdf --output draft.json

  Import with a local OpenAI-compatible model:
    cvimport resume.docx --service local --model llama3.1 \\
      --base-url http://localhost:11434/v1

  Offline import (literal fields only):
    cvimport resume.docx --service rule-based
""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("source", nargs="?", help="CV file to import (.pdf or .docx)")
    parser.add_argument("--service", default=DEFAULT_SERVICE,
                        help=f"Extraction service to use (default: {DEFAULT_SERVICE}). "
                             "See --list-services.")
    parser.add_argument("--model", help="Model name passed to the extraction service")
    parser.add_argument("--base-url", help="OpenAI-compatible endpoint for the extraction service")
    parser.add_argument("--output", help="Write the draft JSON here instead of stdout")
    parser.add_argument("--min-text-length", type=int, default=MIN_TEXT_LENGTH,
                        help=f"Minimum characters of text required (default: {MIN_TEXT_LENGTH})")
    parser.add_argument("--verbosity", type=int, choices=[0, 1, 2], default=0,
                        help="0 = quiet, 1 = stage transitions, 2 = page progress and details")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logs + stack traces on failure.")
    parser.add_argument("--log-file",
                        help="Optional path to a log file. If set, all output is also written there.")
    parser.add_argument("--list-services", action="store_true",
                        help="List the available extraction services and exit")
    parser.add_argument("--list-extractors", action="store_true",
                        help="List the supported input formats and exit")

    args = parser.parse_args(argv)

    if args.list_services:
        _handle_list_command("services")
        sys.exit(0)
    if args.list_extractors:
        _handle_list_command("extractors")
        sys.exit(0)

    if not args.source:
        parser.error("the following arguments are required: source")
    if args.min_text_length < 0:
        parser.error("--min-text-length must not be negative")

    return ImportConfig(
        source=Path(args.source),
        output=Path(args.output) if args.output else None,
        service=args.service,
        model=args.model,
        base_url=args.base_url,
        min_text_length=args.min_text_length,
        debug=args.debug,
        verbosity=args.verbosity,
        log_file=args.log_file,
    )
