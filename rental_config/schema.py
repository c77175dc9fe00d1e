"""
LedgerConfig schema.

Frozen dataclasses the loader parses YAML into.  Every section has
defaults so that an empty overlay file is valid; the bundled
``defaults.yaml`` spells the same values out for reviewers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings.  Pool options apply to PostgreSQL only."""

    url: str = "sqlite:///rental_ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class RetryConfig:
    """Transient lock-contention retry (run once, retry once by default)."""

    max_attempts: int = 2
    delay_seconds: float = 0.2


@dataclass(frozen=True)
class ScheduleConfig:
    due_day: int = 5


@dataclass(frozen=True)
class TransactionDefaults:
    currency: str = "AED"
    payment_method: str = "Bank Transfer"
    transaction_type: str = "Rent Payment"
    status: str = "Pending"


@dataclass(frozen=True)
class ProcessingFeeConfig:
    credit_card_rate: Decimal = Decimal("0.029")
    bank_transfer_flat: Decimal = Decimal("5.00")


@dataclass(frozen=True)
class PaginationConfig:
    default_limit: int = 50


@dataclass(frozen=True)
class LedgerConfig:
    """Root configuration object returned by get_active_config()."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    transactions: TransactionDefaults = field(default_factory=TransactionDefaults)
    processing_fees: ProcessingFeeConfig = field(default_factory=ProcessingFeeConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    log_level: str = "INFO"
