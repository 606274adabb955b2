"""
CLI Phase 3: Execute the import.

Runs one import session for the configured source, logs its progress and
writes the canonical draft as JSON.
"""

from __future__ import annotations

import asyncio
import json
import sys

from .cli_config import ImportConfig
from .errors import CVImportError
from .logging_utils import LOG, fmt_failure
from .models import CanonicalDraft
from .services import get_service
from .session import ImportSession
from .shared import ProgressEvent, load_upload


def _log_event(event: ProgressEvent) -> None:
    if event.is_page_progress:
        LOG.debug("  page %d/%d", event.detail.current_page, event.detail.total_pages)
    else:
        LOG.info("-> %s", event.stage.value)


def _write_draft(config: ImportConfig, draft: CanonicalDraft) -> None:
    payload = json.dumps(draft.as_dict(), ensure_ascii=False, indent=2)
    if config.output is None:
        sys.stdout.write(payload + "\n")
        return
    config.output.write_text(payload + "\n", encoding="utf-8")
    LOG.info("Draft written to %s", config.output)


async def run_import(config: ImportConfig) -> CanonicalDraft:
    """Run one import session end to end and return its draft."""
    service = get_service(config.service, **config.service_kwargs())
    if service is None:
        raise ValueError(f"Unknown service: {config.service}")

    upload = await load_upload(config.source)
    session = ImportSession(service, min_text_length=config.min_text_length)
    return await session.run(upload, observer=_log_event)


def execute_pipeline(config: ImportConfig) -> int:
    """
    Phase 3: Execute the import based on user configuration.

    Returns exit code (0 = success, 1 = failure).
    """
    try:
        draft = asyncio.run(run_import(config))
    except CVImportError as e:
        LOG.error("Import failed: %s", fmt_failure(e.kind, e.message, e.recovery))
        return 1

    LOG.info(
        "Imported %s: %d entities",
        draft.personal_info.full_name,
        len(draft.entity_ids()),
    )
    _write_draft(config, draft)
    return 0
