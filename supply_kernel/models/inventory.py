"""
Module: supply_kernel.models.inventory
Responsibility: ORM persistence for per-branch stock of catalog items.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - One record per (branch, item).
    - Stock counts and levels are non-negative; min_stock_level <= max_stock_level.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from supply_kernel.domain.dtos import InventoryRecord


class InventoryModel(TrackedBase):
    __tablename__ = "inventory"

    __table_args__ = (
        UniqueConstraint("branch_id", "item_id", name="uq_inventory_branch_item"),
        CheckConstraint("current_stock >= 0", name="ck_inventory_non_negative_stock"),
        CheckConstraint(
            "min_stock_level >= 0 AND min_stock_level <= max_stock_level",
            name="ck_inventory_levels",
        ),
    )

    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("branches.id"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    current_stock: Mapped[int] = mapped_column(nullable=False, default=0)
    min_stock_level: Mapped[int] = mapped_column(nullable=False, default=0)
    max_stock_level: Mapped[int] = mapped_column(nullable=False, default=0)
    unit_cost: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    last_updated: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    def to_dto(self) -> InventoryRecord:
        return InventoryRecord(
            id=self.id,
            branch_id=self.branch_id,
            item_id=self.item_id,
            current_stock=self.current_stock,
            min_stock_level=self.min_stock_level,
            max_stock_level=self.max_stock_level,
            unit_cost=Decimal(self.unit_cost) if self.unit_cost is not None else None,
            last_updated=self.last_updated,
        )

    def __repr__(self) -> str:
        return (
            f"<Inventory branch={self.branch_id} item={self.item_id} "
            f"stock={self.current_stock}>"
        )
