"""
Supply configuration schema.

Frozen dataclasses the YAML loader parses into.  Every section has
defaults, so an empty YAML document yields a usable configuration; the
loader only rejects values that are present and invalid.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NumberingConfig:
    """Document number prefixes and the collision retry budget."""

    request_prefix: str = "REQ"
    order_prefix: str = "ORD"
    shipment_prefix: str = "SHP"
    suffix_digits: int = 6
    max_attempts: int = 10


@dataclass(frozen=True)
class WorkflowConfig:
    """Policy knobs of the request lifecycle.

    ``allow_resubmission``: a ``modified`` request may be revised by its
    branch and sent back to ``pending``.  When False, ``modified`` is final
    and the branch must open a new request.
    """

    allow_resubmission: bool = True
    note_separator: str = "\n\n"


@dataclass(frozen=True)
class PersistenceConfig:
    request_timeout_seconds: float = 30.0
    pool_size: int = 10
    max_overflow: int = 10


@dataclass(frozen=True)
class InventoryConfig:
    receive_on_delivery: bool = True
    critical_ratio: float = 0.25


@dataclass(frozen=True)
class BudgetConfig:
    charge_on_delivery: bool = True
    expense_type: str = "order_delivery"


@dataclass(frozen=True)
class SupplyConfig:
    """The complete runtime configuration."""

    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    checksum: str | None = None
