"""
Module: supply_kernel.models.audit_event
Responsibility: ORM persistence for the transition audit trail.  Every
    committed status change of a request, order or shipment -- and every
    creation -- leaves one row here, written in the same transaction as
    the change itself.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain DTOs only.

Invariants enforced:
    - Audit rows are append-only; the kernel never updates or deletes them.
    - from_state is NULL exactly for creation rows.
    - sequence numbers each entity's rows 1, 2, 3, ... in commit order.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import Base, UTCDateTime, UUIDString
from supply_kernel.domain.dtos import AuditEntry


class TransitionAuditModel(Base):
    __tablename__ = "transition_audit"

    __table_args__ = (
        Index("ix_transition_audit_entity", "entity_type", "entity_id", "occurred_at"),
        UniqueConstraint(
            "entity_type", "entity_id", "sequence", name="uq_transition_audit_entity_sequence",
        ),
    )

    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    entity_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    from_state: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_state: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            sequence=self.sequence,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            from_state=self.from_state,
            to_state=self.to_state,
            actor_id=self.actor_id,
            actor_role=self.actor_role,
            occurred_at=self.occurred_at,
            entity_number=self.entity_number,
            payload=dict(self.payload or {}),
        )

    def __repr__(self) -> str:
        return (
            f"<TransitionAudit {self.entity_type}:{self.entity_id} "
            f"{self.from_state}->{self.to_state}>"
        )
