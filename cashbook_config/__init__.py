"""
cashbook_config -- single entrypoint for runtime configuration.

Responsibility:
    ``get_settings()`` is the only way components obtain configuration.
    Packaged defaults come from ``defaults.yaml``; an override file can be
    passed explicitly or named by the ``CASHBOOK_CONFIG`` environment
    variable.

Architecture position:
    Configuration -- sits beside ``cashbook_services``.  The kernel and the
    engines never import from here; services receive plain values.

Audit relevance:
    Every call emits a ``CASHBOOK_CONFIG_TRACE`` log entry with the source
    file and a checksum of the effective values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from cashbook_config.loader import compute_checksum, load_settings
from cashbook_config.schema import (
    CashbookSettings,
    DatabaseSettings,
    DistributionSettings,
    LedgerSettings,
    SettlementSettings,
)

_logger = logging.getLogger("cashbook.config")

ENV_VAR = "CASHBOOK_CONFIG"


def get_settings(path: Path | str | None = None) -> CashbookSettings:
    """Load settings from defaults plus an optional override file."""
    if path is None and os.environ.get(ENV_VAR):
        path = os.environ[ENV_VAR]
    settings = load_settings(Path(path) if path is not None else None)
    _logger.info(
        "CASHBOOK_CONFIG_TRACE",
        extra={
            "trace_type": "CASHBOOK_CONFIG_TRACE",
            "config_source": settings.source,
            "checksum": compute_checksum(settings),
            "settlement_tolerance": str(settings.settlement.tolerance),
        },
    )
    return settings


__all__ = [
    "CashbookSettings",
    "DatabaseSettings",
    "DistributionSettings",
    "LedgerSettings",
    "SettlementSettings",
    "get_settings",
]
