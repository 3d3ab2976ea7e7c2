"""
invoicing_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the returned ``LedgerConfig``
    by constructor injection and never read YAML or environment variables
    themselves.

Architecture position:
    Configuration -- sits beside ``invoicing_kernel`` and below
    ``invoicing_modules`` / ``invoicing_services``.  The kernel MUST NEVER
    import from ``invoicing_config``.

Failure modes:
    - ``FileNotFoundError`` -- the selected configuration file is missing.
    - ``ValueError`` -- schema validation failures.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from invoicing_config.loader import load_ledger_config
from invoicing_config.schema import (
    BackupRules,
    DocumentRules,
    FrequencyDef,
    IntegerBounds,
    LedgerConfig,
    RecurringRules,
    SettingsDefaults,
)

_logger = logging.getLogger("invoicing.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_DEFAULT_CONFIG_FILE = _DEFAULT_CONFIG_DIR / "default.yaml"

CONFIG_ENV_VAR = "INVOICING_CONFIG"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: explicit ``path``, then the ``INVOICING_CONFIG``
    environment variable, then ``invoicing_config/sets/default.yaml``.

    Raises:
        FileNotFoundError: If the selected file does not exist.
        ValueError: If configuration validation fails.
    """
    if path is not None:
        config_path = Path(path)
    elif os.environ.get(CONFIG_ENV_VAR):
        config_path = Path(os.environ[CONFIG_ENV_VAR])
    else:
        config_path = _DEFAULT_CONFIG_FILE

    config = load_ledger_config(config_path)

    _logger.info(
        "INVOICING_CONFIG_TRACE",
        extra={
            "trace_type": "INVOICING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "config_checksum": config.checksum,
            "config_path": str(config_path),
        },
    )
    return config


__all__ = [
    "BackupRules",
    "DocumentRules",
    "FrequencyDef",
    "IntegerBounds",
    "LedgerConfig",
    "RecurringRules",
    "SettingsDefaults",
    "get_active_config",
]
