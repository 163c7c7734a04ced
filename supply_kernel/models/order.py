"""
Module: supply_kernel.models.order
Responsibility: ORM persistence for supplier orders and their priced lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - order_number is unique.
    - request_id is unique: a supply request has at most one order.  Two
      racing confirmations cannot both commit.
    - status is one of the order workflow states.

Failure modes:
    - IntegrityError on a second order for the same request (surfaced as
      ConcurrentModificationError by the repository).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from supply_kernel.domain.dtos import Order, OrderItem, OrderStatus


class OrderModel(TrackedBase):
    """Persistent supplier order."""

    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'shipped', 'delivered', 'cancelled')",
            name="ck_orders_valid_status",
        ),
        Index("ix_orders_supplier_status", "supplier_id", "status"),
    )

    order_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supply_requests.id"), nullable=False, unique=True,
    )
    supplier_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("suppliers.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value,
    )
    expected_delivery: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_delivery: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status}>"

    def to_dto(self, branch_id: UUID, items: list[OrderItemModel] | tuple = ()) -> Order:
        return Order(
            id=self.id,
            order_number=self.order_number,
            request_id=self.request_id,
            supplier_id=self.supplier_id,
            branch_id=branch_id,
            status=OrderStatus(self.status),
            expected_delivery=self.expected_delivery,
            actual_delivery=self.actual_delivery,
            notes=self.notes,
            created_at=self.created_at,
            items=tuple(i.to_dto() for i in items),
        )


class OrderItemModel(TrackedBase):
    """A priced line copied from the request when the order was created."""

    __tablename__ = "order_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_positive_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_non_negative_price"),
        Index("ix_order_items_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(18, 2), nullable=False, default=Decimal("0"),
    )

    def to_dto(self) -> OrderItem:
        return OrderItem(
            id=self.id,
            order_id=self.order_id,
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=Decimal(self.unit_price),
        )
