"""
Module: supply_kernel.models.supply_request
Responsibility: ORM persistence for supply requests and their item lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs (for to_dto conversion) only.

Invariants enforced:
    - request_number is unique.
    - status is one of the supply request workflow states (check constraint).
    - required_date, when set, is not before requested_date.
    - Line quantities are strictly positive.

Failure modes:
    - IntegrityError on duplicate request_number or constraint violations.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from supply_kernel.domain.dtos import (
    Priority,
    RequestItem,
    RequestStatus,
    SupplyRequest,
)


class SupplyRequestModel(TrackedBase):
    """Persistent supply request.

    Contract:
        Status is only ever changed through compare-and-swap UPDATEs issued
        by the repository; ``notes`` only ever grows.
    """

    __tablename__ = "supply_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'modified', "
            "'confirmed', 'denied')",
            name="ck_supply_requests_valid_status",
        ),
        CheckConstraint(
            "priority IN ('low', 'medium', 'high')",
            name="ck_supply_requests_valid_priority",
        ),
        CheckConstraint(
            "required_date IS NULL OR required_date >= requested_date",
            name="ck_supply_requests_required_after_requested",
        ),
        Index("ix_supply_requests_branch_status", "branch_id", "status"),
    )

    request_number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        String(10), nullable=False, default=Priority.MEDIUM.value,
    )
    branch_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("branches.id"), nullable=False,
    )
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RequestStatus.PENDING.value,
    )
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    required_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    approved_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<SupplyRequest {self.request_number} status={self.status}>"

    def to_dto(
        self,
        items: list[RequestItemModel] | tuple = (),
        supplier_id: UUID | None = None,
    ) -> SupplyRequest:
        """Convert ORM model to frozen domain DTO."""
        return SupplyRequest(
            id=self.id,
            request_number=self.request_number,
            title=self.title,
            description=self.description,
            priority=Priority(self.priority),
            branch_id=self.branch_id,
            requested_by=self.requested_by,
            status=RequestStatus(self.status),
            requested_date=self.requested_date,
            required_date=self.required_date,
            approved_by=self.approved_by,
            approved_date=self.approved_date,
            notes=self.notes,
            supplier_id=supplier_id,
            items=tuple(i.to_dto() for i in items),
        )


class RequestItemModel(TrackedBase):
    """One catalog item line on a supply request."""

    __tablename__ = "request_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_request_items_positive_quantity"),
        Index("ix_request_items_request", "request_id"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supply_requests.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False,
    )
    quantity: Mapped[int] = mapped_column(nullable=False)
    specifications: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> RequestItem:
        return RequestItem(
            id=self.id,
            request_id=self.request_id,
            item_id=self.item_id,
            quantity=self.quantity,
            specifications=self.specifications,
            notes=self.notes,
        )
