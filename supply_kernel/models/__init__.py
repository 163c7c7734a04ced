"""ORM models for the supply kernel."""

from supply_kernel.models.audit_event import TransitionAuditModel
from supply_kernel.models.budget import (
    AnnualBudgetModel,
    BudgetCategoryModel,
    BudgetExpenseModel,
    BudgetStatus,
)
from supply_kernel.models.catalog import CategoryModel, ItemModel
from supply_kernel.models.inventory import InventoryModel
from supply_kernel.models.issued_number import IssuedNumberModel
from supply_kernel.models.order import OrderItemModel, OrderModel
from supply_kernel.models.party import BranchModel, PartyStatus, SupplierModel
from supply_kernel.models.shipment import ShipmentModel
from supply_kernel.models.supply_request import RequestItemModel, SupplyRequestModel

__all__ = [
    "AnnualBudgetModel",
    "BranchModel",
    "BudgetCategoryModel",
    "BudgetExpenseModel",
    "BudgetStatus",
    "CategoryModel",
    "InventoryModel",
    "IssuedNumberModel",
    "ItemModel",
    "OrderItemModel",
    "OrderModel",
    "PartyStatus",
    "RequestItemModel",
    "ShipmentModel",
    "SupplierModel",
    "SupplyRequestModel",
    "TransitionAuditModel",
]
