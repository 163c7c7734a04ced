"""
Module: supply_kernel.models.party
Responsibility: ORM persistence for the two kinds of parties in the supply
    chain: branches (requesting locations that receive shipments) and
    suppliers (external companies that confirm and ship orders).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - branch_name and supplier company_name are unique.
    - user_id links the party to the authentication provider's user; the
      kernel never reads sessions, it only stores the association.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UUIDString


class PartyStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BranchModel(TrackedBase):
    """A requesting location."""

    __tablename__ = "branches"

    branch_name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    manager_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PartyStatus.ACTIVE.value,
    )
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Branch {self.branch_name}>"


class SupplierModel(TrackedBase):
    """An external fulfillment party."""

    __tablename__ = "suppliers"

    company_name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    contact_person: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PartyStatus.ACTIVE.value,
    )
    user_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Supplier {self.company_name}>"
