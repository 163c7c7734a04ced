"""Selectors for the supply kernel (read side)."""

from supply_kernel.selectors.audit_selector import AuditSelector
from supply_kernel.selectors.inventory_selector import InventorySelector
from supply_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "AuditSelector",
    "InventorySelector",
    "RequestSelector",
]
