"""
CLI Phase 2: Prepare execution environment.

Validates inputs and prepares the output directory.
No actual execution - just setup.
"""

from __future__ import annotations

from .cli_config import ImportConfig
from .logging_utils import LOG
from .services import list_services


def prepare_execution_environment(config: ImportConfig) -> ImportConfig:
    """
    Phase 2: Validate inputs and prepare execution environment.

    - Validates the source file exists
    - Validates the service name is registered
    - Creates the output directory
    - No execution yet

    Returns the same config (for chaining).
    """
    if not config.source.is_file():
        LOG.error("Source not found or not a file: %s", config.source)
        raise ValueError(f"Source not found or not a file: {config.source}")

    known = [s["name"] for s in list_services()]
    if config.service not in known:
        LOG.error("Unknown service '%s'. Available: %s", config.service, ", ".join(known))
        raise ValueError(f"Unknown service: {config.service}")

    if config.output is not None:
        config.output.parent.mkdir(parents=True, exist_ok=True)

    return config
