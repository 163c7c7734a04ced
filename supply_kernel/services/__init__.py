"""Services for the supply kernel (write side)."""

from supply_kernel.services.auditor_service import AuditorService
from supply_kernel.services.budget_service import BudgetService
from supply_kernel.services.event_publisher import TransitionPublisher
from supply_kernel.services.inventory_service import InventoryService
from supply_kernel.services.number_service import NumberService
from supply_kernel.services.repository import SqlAlchemySupplyRepository, SupplyRepository
from supply_kernel.services.workflow_engine import WorkflowEngine

__all__ = [
    "AuditorService",
    "BudgetService",
    "InventoryService",
    "NumberService",
    "SqlAlchemySupplyRepository",
    "SupplyRepository",
    "TransitionPublisher",
    "WorkflowEngine",
]
