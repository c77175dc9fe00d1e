"""
rental_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration -- sits above ``rental_kernel`` and below
    ``rental_services``.  The kernel MUST NEVER import from
    ``rental_config``; the service layer translates the config into kernel
    inputs (retry policy, fee schedule, transaction defaults).

Invariants enforced:
    - Layering: bundled ``defaults.yaml``, then the file named by
      ``RENTAL_LEDGER_CONFIG`` (or ``config_path``), then
      ``RENTAL_LEDGER_DATABASE_URL`` for the database URL.
    - The returned ``LedgerConfig`` is frozen and cached until
      ``reset_active_config()``.

Failure modes:
    - ``FileNotFoundError`` -- the overlay file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every load emits a ``LEDGER_CONFIG_TRACE`` log entry with the source
    files and checksum of the merged configuration.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rental_config.loader import compute_checksum, load_yaml_file, merge_layers, parse_config
from rental_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    PaginationConfig,
    ProcessingFeeConfig,
    RetryConfig,
    ScheduleConfig,
    TransactionDefaults,
)

_logger = logging.getLogger("rental_kernel.config")

CONFIG_PATH_ENV = "RENTAL_LEDGER_CONFIG"
DATABASE_URL_ENV = "RENTAL_LEDGER_DATABASE_URL"

_DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

_active: LedgerConfig | None = None


def load_config(config_path: Path | str | None = None) -> LedgerConfig:
    """Build a LedgerConfig from the bundled defaults plus overrides.

    Args:
        config_path: Overlay YAML file.  Falls back to the path in
            ``RENTAL_LEDGER_CONFIG`` when omitted.

    Raises:
        FileNotFoundError: If the overlay file does not exist.
        ValueError: If the merged configuration is invalid.
    """
    sources = [str(_DEFAULTS_FILE)]
    data = load_yaml_file(_DEFAULTS_FILE)

    overlay = config_path or os.environ.get(CONFIG_PATH_ENV)
    if overlay:
        data = merge_layers(data, load_yaml_file(Path(overlay)))
        sources.append(str(overlay))

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = merge_layers(data, {"database": {"url": database_url}})
        sources.append(f"env:{DATABASE_URL_ENV}")

    config = parse_config(data)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "sources": sources,
            "checksum": compute_checksum(data),
            "retry_max_attempts": config.retry.max_attempts,
            "due_day": config.schedule.due_day,
        },
    )
    return config


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    The first call loads and caches the configuration; later calls return
    the cached object.  Passing ``config_path`` forces a reload from that
    overlay.
    """
    global _active
    if _active is None or config_path is not None:
        _active = load_config(config_path)
    return _active


def reset_active_config() -> None:
    """Drop the cached configuration (tests, reconfiguration)."""
    global _active
    _active = None


__all__ = [
    "get_active_config",
    "reset_active_config",
    "load_config",
    "CONFIG_PATH_ENV",
    "DATABASE_URL_ENV",
    "LedgerConfig",
    "DatabaseConfig",
    "RetryConfig",
    "ScheduleConfig",
    "TransactionDefaults",
    "ProcessingFeeConfig",
    "PaginationConfig",
]
