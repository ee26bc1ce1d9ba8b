"""
Cashbook settings schema.

Frozen dataclasses produced by the loader.  Services receive the values
they need through their constructors; nothing below the service layer
reads settings directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from decimal import Decimal


@dataclass(frozen=True)
class SettlementSettings:
    tolerance: Decimal = Decimal("250")
    adjustment_noise_threshold: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class LedgerSettings:
    entry_time_of_day: time = time(12, 0)
    local_timezone: str = "UTC"


@dataclass(frozen=True)
class DistributionSettings:
    auto_distribute_party_income: bool = False
    payment_note: str = "From ledger entry"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite+pysqlite:///:memory:"
    echo: bool = False


@dataclass(frozen=True)
class CashbookSettings:
    """Complete runtime configuration."""

    settlement: SettlementSettings = SettlementSettings()
    ledger: LedgerSettings = LedgerSettings()
    distribution: DistributionSettings = DistributionSettings()
    database: DatabaseSettings = DatabaseSettings()
    audit_workers: int = 1
    log_level: str = "INFO"
    source: str = "<defaults>"
