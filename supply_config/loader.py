"""
Configuration Loader (``supply_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``supply_config.schema`` dataclasses.  Runtime callers go through
``supply_config.get_active_config()``; this module is the parsing
machinery behind it.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown sections or keys are rejected, so a typo never silently falls
  back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed values for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value or unknown key  -> ``ValueError`` with the offending path.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from supply_config.schema import (
    BudgetConfig,
    InventoryConfig,
    NumberingConfig,
    PersistenceConfig,
    SupplyConfig,
    WorkflowConfig,
)

_SECTIONS: dict[str, type] = {
    "numbering": NumberingConfig,
    "workflow": WorkflowConfig,
    "persistence": PersistenceConfig,
    "inventory": InventoryConfig,
    "budget": BudgetConfig,
}


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
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def _parse_section(name: str, cls: type, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(data).__name__}")

    known = {f.name: f for f in dataclasses.fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"{name}: unknown keys {sorted(unknown)}")

    defaults = cls()
    values: dict[str, Any] = {}
    for key, value in data.items():
        expected = type(getattr(defaults, key))
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            raise ValueError(
                f"{name}.{key}: expected {expected.__name__}, got {value!r}"
            )
        values[key] = value
    return cls(**values)


def _validate(config: SupplyConfig) -> None:
    numbering = config.numbering
    for key in ("request_prefix", "order_prefix", "shipment_prefix"):
        prefix = getattr(numbering, key)
        if not prefix or not prefix.isalnum():
            raise ValueError(f"numbering.{key}: must be non-empty alphanumeric, got {prefix!r}")
    prefixes = {numbering.request_prefix, numbering.order_prefix, numbering.shipment_prefix}
    if len(prefixes) != 3:
        raise ValueError("numbering: request, order and shipment prefixes must differ")
    if not 4 <= numbering.suffix_digits <= 12:
        raise ValueError("numbering.suffix_digits: must be between 4 and 12")
    if numbering.max_attempts < 1:
        raise ValueError("numbering.max_attempts: must be at least 1")
    if config.persistence.request_timeout_seconds <= 0:
        raise ValueError("persistence.request_timeout_seconds: must be positive")
    if not 0 < config.inventory.critical_ratio <= 1:
        raise ValueError("inventory.critical_ratio: must be in (0, 1]")


def parse_config(data: dict[str, Any]) -> SupplyConfig:
    """
    Parse a ``SupplyConfig`` from a dict.

    Raises:
        ValueError: unknown section or key, wrong type, or invalid value.
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown configuration sections {sorted(unknown)}")

    sections = {
        name: _parse_section(name, cls, data.get(name))
        for name, cls in _SECTIONS.items()
    }
    config = SupplyConfig(**sections)
    _validate(config)
    return dataclasses.replace(config, checksum=compute_checksum(config))


def compute_checksum(config: SupplyConfig) -> str:
    """SHA-256 over the canonical JSON of every section (checksum excluded)."""
    payload = {name: dataclasses.asdict(getattr(config, name)) for name in _SECTIONS}
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config_file(path: Path) -> SupplyConfig:
    """Load and parse one YAML configuration file."""
    return parse_config(load_yaml_file(path))
