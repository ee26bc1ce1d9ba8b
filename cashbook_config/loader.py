"""
Configuration Loader (``cashbook_config.loader``).

Responsibility
--------------
Reads YAML files and parses them into the frozen ``CashbookSettings``
dataclass.  The defaults file is always read first; an override file is
deep-merged over it, so an override only needs the keys it changes.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range or malformed value  -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import hashlib
import json
from datetime import time
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from cashbook_config.schema import (
    CashbookSettings,
    DatabaseSettings,
    DistributionSettings,
    LedgerSettings,
    SettlementSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _decimal(value: Any, key: str, *, minimum: Decimal = Decimal("0")) -> Decimal:
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{key}: not a decimal: {value!r}") from None
    if not result.is_finite() or result < minimum:
        raise ValueError(f"{key}: must be a finite value >= {minimum}, got {value!r}")
    return result


def _time_of_day(value: Any, key: str) -> time:
    try:
        return time.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"{key}: expected HH:MM, got {value!r}") from None


def _timezone(value: Any, key: str) -> str:
    name = str(value)
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"{key}: unknown timezone {name!r}") from None
    return name


def _bool(value: Any, key: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected true/false, got {value!r}")
    return value


def parse_settings(data: dict[str, Any], source: str = "<dict>") -> CashbookSettings:
    """Build CashbookSettings from a merged configuration mapping."""
    settlement = data.get("settlement", {})
    ledger = data.get("ledger", {})
    distribution = data.get("distribution", {})
    database = data.get("database", {})
    audit = data.get("audit", {})
    logging_cfg = data.get("logging", {})

    workers = audit.get("workers", 1)
    if not isinstance(workers, int) or isinstance(workers, bool) or workers < 1:
        raise ValueError(f"audit.workers: must be a positive integer, got {workers!r}")

    level = str(logging_cfg.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level: must be one of {_LOG_LEVELS}, got {level!r}")

    return CashbookSettings(
        settlement=SettlementSettings(
            tolerance=_decimal(settlement.get("tolerance", "250"), "settlement.tolerance"),
            adjustment_noise_threshold=_decimal(
                settlement.get("adjustment_noise_threshold", "0.01"),
                "settlement.adjustment_noise_threshold",
            ),
        ),
        ledger=LedgerSettings(
            entry_time_of_day=_time_of_day(
                ledger.get("entry_time_of_day", "12:00"), "ledger.entry_time_of_day"
            ),
            local_timezone=_timezone(
                ledger.get("local_timezone", "UTC"), "ledger.local_timezone"
            ),
        ),
        distribution=DistributionSettings(
            auto_distribute_party_income=_bool(
                distribution.get("auto_distribute_party_income", False),
                "distribution.auto_distribute_party_income",
            ),
            payment_note=str(distribution.get("payment_note", "From ledger entry")),
        ),
        database=DatabaseSettings(
            url=str(database.get("url", DatabaseSettings.url)),
            echo=_bool(database.get("echo", False), "database.echo"),
        ),
        audit_workers=workers,
        log_level=level,
        source=source,
    )


def load_settings(path: Path | None = None) -> CashbookSettings:
    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if path is not None:
        data = deep_merge(data, load_yaml_file(path))
        source = str(path)
    return parse_settings(data, source=source)


def compute_checksum(settings: CashbookSettings) -> str:
    """Deterministic SHA-256 prefix identifying a settings value."""
    payload = json.dumps(
        {
            "tolerance": str(settings.settlement.tolerance),
            "noise": str(settings.settlement.adjustment_noise_threshold),
            "time_of_day": settings.ledger.entry_time_of_day.isoformat(),
            "timezone": settings.ledger.local_timezone,
            "auto_distribute": settings.distribution.auto_distribute_party_income,
            "payment_note": settings.distribution.payment_note,
            "audit_workers": settings.audit_workers,
        },
        sort_keys=True,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
