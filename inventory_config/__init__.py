"""
inventory_config -- single public entrypoint for reconciliation configuration.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains
    configuration.  It returns a frozen ``ReconciliationConfig``.

Architecture position:
    Sits above ``inventory_kernel`` and ``inventory_ingestion`` and below
    ``inventory_services``.  The kernel never imports this package;
    ``inventory_config.bridges`` translates config into kernel inputs.

Audit relevance:
    Every call emits an ``INVENTORY_CONFIG_TRACE`` log entry with the config
    id, version and checksum, so each run can be tied to the exact
    configuration that governed its matching.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_config
from inventory_config.schema import ReconciliationConfig

_logger = logging.getLogger("inventory_kernel.config")


def get_active_config(path: Path | None = None) -> ReconciliationConfig:
    """Load defaults, merge the override file at ``path`` and validate.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        ConfigurationError: a value fails validation.
    """
    config = load_config(path)
    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "override_path": str(path) if path else None,
            "min_confidence": config.matching.min_confidence,
        },
    )
    return config


__all__ = ["ReconciliationConfig", "get_active_config"]
