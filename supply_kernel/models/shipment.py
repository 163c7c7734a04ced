"""
Module: supply_kernel.models.shipment
Responsibility: ORM persistence for shipments (carrier tracking of one order).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - shipment_number is unique.
    - status is one of the shipment workflow states.
    - At most one non-cancelled shipment per order (service-level check).
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from supply_kernel.domain.dtos import Shipment, ShipmentStatus


class ShipmentModel(TrackedBase):
    __tablename__ = "shipments"

    __table_args__ = (
        CheckConstraint(
            "status IN ('preparing', 'shipped', 'in_transit', 'delivered', 'cancelled')",
            name="ck_shipments_valid_status",
        ),
        Index("ix_shipments_order_status", "order_id", "status"),
    )

    shipment_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ShipmentStatus.PREPARING.value,
    )
    carrier: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    shipped_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    estimated_delivery: Mapped[date | None] = mapped_column(Date, nullable=True)
    actual_delivery: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Shipment {self.shipment_number} status={self.status}>"

    def to_dto(self, supplier_id: UUID, branch_id: UUID) -> Shipment:
        return Shipment(
            id=self.id,
            shipment_number=self.shipment_number,
            order_id=self.order_id,
            supplier_id=supplier_id,
            branch_id=branch_id,
            status=ShipmentStatus(self.status),
            carrier=self.carrier,
            tracking_number=self.tracking_number,
            shipped_date=self.shipped_date,
            estimated_delivery=self.estimated_delivery,
            actual_delivery=self.actual_delivery,
            notes=self.notes,
        )
