"""
supply_config -- single public entrypoint for supply kernel configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the returned
    ``SupplyConfig`` by constructor injection; no other component reads
    configuration files or environment variables.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  This package
    sits beside ``supply_kernel``; the kernel only ever sees the frozen
    ``SupplyConfig`` dataclasses.

Failure modes:
    - ``FileNotFoundError`` -- the selected YAML file does not exist.
    - ``ValueError`` -- unknown keys, wrong types or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``SUPPLY_CONFIG_TRACE`` log entry with the source path and checksum,
    tying transitions back to the configuration that governed them.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from supply_config.loader import compute_checksum, load_config_file, parse_config
from supply_config.schema import (
    BudgetConfig,
    InventoryConfig,
    NumberingConfig,
    PersistenceConfig,
    SupplyConfig,
    WorkflowConfig,
)

_logger = logging.getLogger("supply_kernel.config")

CONFIG_PATH_ENV = "SUPPLY_CONFIG_PATH"

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> SupplyConfig:
    """Load the active configuration.

    Resolution order: explicit ``path``, then the ``SUPPLY_CONFIG_PATH``
    environment variable, then the packaged ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If configuration validation fails.
    """
    env_path = os.environ.get(CONFIG_PATH_ENV)
    source = Path(path) if path is not None else (
        Path(env_path) if env_path else _DEFAULT_CONFIG_FILE
    )

    config = load_config_file(source)

    _logger.info(
        "SUPPLY_CONFIG_TRACE",
        extra={
            "trace_type": "SUPPLY_CONFIG_TRACE",
            "config_source": str(source),
            "checksum": config.checksum,
            "allow_resubmission": config.workflow.allow_resubmission,
            "receive_on_delivery": config.inventory.receive_on_delivery,
            "charge_on_delivery": config.budget.charge_on_delivery,
        },
    )
    return config


__all__ = [
    "BudgetConfig",
    "CONFIG_PATH_ENV",
    "InventoryConfig",
    "NumberingConfig",
    "PersistenceConfig",
    "SupplyConfig",
    "WorkflowConfig",
    "compute_checksum",
    "get_active_config",
    "parse_config",
]
