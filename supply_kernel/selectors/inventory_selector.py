"""
Module: supply_kernel.selectors.inventory_selector
Responsibility: Low-stock projections of branch inventory for the reorder
    dashboards.
Architecture position: Kernel > Selectors.  Read-only.

An item is low when ``current_stock < min_stock_level``.  It is critical when
the stock has fallen to ``critical_ratio`` of the minimum or below.

Visibility:
    - admin sees every branch, or one branch when ``branch_id`` is given;
    - a branch sees its own branch only;
    - suppliers hold no inventory and are denied.
"""

from uuid import UUID

from sqlalchemy import select

from supply_kernel.domain.actors import Actor, BranchActor
from supply_kernel.domain.authorization import require_admin, require_branch_access
from supply_kernel.domain.dtos import LowStockAlert
from supply_kernel.models.catalog import ItemModel
from supply_kernel.models.inventory import InventoryModel
from supply_kernel.selectors.base import BaseSelector

CRITICAL = "critical"
LOW = "low"


def severity(current_stock: int, min_stock_level: int, critical_ratio: float) -> str:
    return CRITICAL if current_stock <= min_stock_level * critical_ratio else LOW


class InventorySelector(BaseSelector):
    def __init__(self, session, critical_ratio: float = 0.25):
        super().__init__(session)
        self._critical_ratio = critical_ratio

    def low_stock(self, actor: Actor, branch_id: UUID | None = None) -> list[LowStockAlert]:
        """
        Items below their minimum stock level, most depleted first.

        Raises:
            AuthorizationError: a supplier, or a branch asking for another
                branch.
        """
        if branch_id is None and isinstance(actor, BranchActor):
            branch_id = actor.branch_id
        if branch_id is not None:
            require_branch_access(actor, branch_id, "view low stock")
        else:
            require_admin(actor, "view low stock")

        stmt = (
            select(InventoryModel, ItemModel.name)
            .select_from(InventoryModel)
            .join(ItemModel, ItemModel.id == InventoryModel.item_id)
            .where(InventoryModel.current_stock < InventoryModel.min_stock_level)
        )
        if branch_id is not None:
            stmt = stmt.where(InventoryModel.branch_id == branch_id)
        stmt = stmt.order_by(
            (InventoryModel.min_stock_level - InventoryModel.current_stock).desc(),
            ItemModel.name,
        ).execution_options(populate_existing=True)

        return [
            LowStockAlert(
                inventory_id=record.id,
                branch_id=record.branch_id,
                item_id=record.item_id,
                item_name=item_name,
                current_stock=record.current_stock,
                min_stock_level=record.min_stock_level,
                severity=severity(
                    record.current_stock, record.min_stock_level, self._critical_ratio,
                ),
            )
            for record, item_name in self.session.execute(stmt).all()
        ]
