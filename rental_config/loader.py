"""
Configuration Loader (``rental_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen ``rental_config.schema``
dataclasses.  Runtime callers use ``rental_config.get_active_config()``;
this module is the parsing machinery behind it.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys inside a section raise
  ``ValueError``; a typo never silently falls back to a default.
* Overlays merge per key: a file that only sets ``retry.max_attempts``
  keeps every other value from the layer beneath it.
* Money-like values are parsed as ``Decimal`` from their string form.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from rental_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    PaginationConfig,
    ProcessingFeeConfig,
    RetryConfig,
    ScheduleConfig,
    TransactionDefaults,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "retry": RetryConfig,
    "schedule": ScheduleConfig,
    "transactions": TransactionDefaults,
    "processing_fees": ProcessingFeeConfig,
    "pagination": PaginationConfig,
}

_SCALARS = ("log_level",)
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def merge_layers(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge ``overlay`` onto ``base`` one section deep."""
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in base.items()}
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def _coerce(section: str, name: str, default: Any, value: Any) -> Any:
    if isinstance(default, Decimal):
        try:
            return Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"{section}.{name}: not a decimal: {value!r}") from exc
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ValueError(f"{section}.{name}: expected true/false, got {value!r}")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{section}.{name}: expected an integer, got {value!r}")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{section}.{name}: expected a number, got {value!r}")
        return float(value)
    return str(value)


def parse_section(section: str, data: dict[str, Any]) -> Any:
    """Parse one section dict into its dataclass."""
    cls = _SECTIONS[section]
    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown keys in '{section}': {unknown}")
    values = {
        name: _coerce(section, name, getattr(defaults, name), value)
        for name, value in data.items()
    }
    return cls(**values)


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a merged configuration dict into a LedgerConfig.

    Raises:
        ValueError: on unknown sections/keys or invalid values.
    """
    unknown = sorted(set(data) - set(_SECTIONS) - set(_SCALARS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {unknown}")

    sections = {
        name: parse_section(name, data.get(name) or {})
        for name in _SECTIONS
    }
    config = LedgerConfig(
        **sections,
        log_level=str(data.get("log_level", "INFO")).upper(),
    )
    validate_config(config)
    return config


def validate_config(config: LedgerConfig) -> None:
    """Cross-field checks that dataclass typing cannot express."""
    if config.retry.max_attempts < 1:
        raise ValueError("retry.max_attempts must be at least 1")
    if config.retry.delay_seconds < 0:
        raise ValueError("retry.delay_seconds must not be negative")
    if not 1 <= config.schedule.due_day <= 28:
        raise ValueError("schedule.due_day must be between 1 and 28")
    if config.pagination.default_limit < 1:
        raise ValueError("pagination.default_limit must be positive")
    if config.processing_fees.credit_card_rate < 0 or config.processing_fees.bank_transfer_flat < 0:
        raise ValueError("processing fees must not be negative")
    if config.log_level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {list(_LOG_LEVELS)}, got {config.log_level!r}")


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a configuration dict."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
