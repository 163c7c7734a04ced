"""
Domain DTOs (``supply_kernel.domain.dtos``).

Responsibility
--------------
Frozen value objects crossing the kernel boundary: drafts submitted by
branches, read projections of requests/orders/shipments, and the
transition events handed to subscribers.  ORM rows never leave the
services layer; they are converted to these first.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from supply_kernel.domain.actors import Actor
from supply_kernel.domain.authorization import OwnershipContext
from supply_kernel.domain.workflow import ORDER, SHIPMENT, SUPPLY_REQUEST


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    CONFIRMED = "confirmed"
    DENIED = "denied"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ShipmentStatus(str, Enum):
    PREPARING = "preparing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class RequestDecision(str, Enum):
    """Admin decisions on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"


class SupplierDecision(str, Enum):
    """Supplier responses to an approved request."""

    CONFIRM = "confirm"
    MODIFY = "modify"
    DENY = "deny"


REQUEST_DECISION_TARGET: dict[RequestDecision, RequestStatus] = {
    RequestDecision.APPROVE: RequestStatus.APPROVED,
    RequestDecision.REJECT: RequestStatus.REJECTED,
    RequestDecision.MODIFY: RequestStatus.MODIFIED,
}

SUPPLIER_DECISION_TARGET: dict[SupplierDecision, RequestStatus] = {
    SupplierDecision.CONFIRM: RequestStatus.CONFIRMED,
    SupplierDecision.MODIFY: RequestStatus.MODIFIED,
    SupplierDecision.DENY: RequestStatus.DENIED,
}


# =========================================================================
# Drafts (input)
# =========================================================================


@dataclass(frozen=True)
class DraftItem:
    """One line of a supply request draft."""

    item_id: UUID | None
    quantity: int
    specifications: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class RequestDraft:
    """Everything a branch fills in when asking for supplies.

    ``branch_id`` defaults to the submitting actor's branch.
    """

    title: str
    items: tuple[DraftItem, ...]
    description: str | None = None
    priority: str = Priority.MEDIUM.value
    required_date: date | None = None
    branch_id: UUID | None = None
    notes: str | None = None


# =========================================================================
# Projections (output)
# =========================================================================


@dataclass(frozen=True)
class RequestItem:
    id: UUID
    request_id: UUID
    item_id: UUID
    quantity: int
    specifications: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SupplyRequest:
    """Read projection of a supply request and its items.

    ``supplier_id`` is the supplier of the request's order, once one exists.
    """

    id: UUID
    request_number: str
    title: str
    branch_id: UUID
    requested_by: UUID
    status: RequestStatus
    requested_date: date
    priority: Priority = Priority.MEDIUM
    description: str | None = None
    required_date: date | None = None
    approved_by: UUID | None = None
    approved_date: datetime | None = None
    notes: str | None = None
    supplier_id: UUID | None = None
    items: tuple[RequestItem, ...] = ()

    def ownership(self) -> OwnershipContext:
        return OwnershipContext(
            entity_type=SUPPLY_REQUEST,
            entity_id=self.id,
            branch_id=self.branch_id,
            supplier_id=self.supplier_id,
        )


@dataclass(frozen=True)
class OrderItem:
    id: UUID
    order_id: UUID
    item_id: UUID
    quantity: int
    unit_price: Decimal = Decimal("0")

    @property
    def total_price(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Order:
    """Read projection of an order.  ``branch_id`` is the destination branch."""

    id: UUID
    order_number: str
    request_id: UUID
    supplier_id: UUID
    branch_id: UUID
    status: OrderStatus
    expected_delivery: date | None = None
    actual_delivery: datetime | None = None
    notes: str | None = None
    created_at: datetime | None = None
    items: tuple[OrderItem, ...] = ()

    @property
    def total(self) -> Decimal:
        return sum((i.total_price for i in self.items), Decimal("0"))

    @property
    def is_fulfilled(self) -> bool:
        return self.status is OrderStatus.DELIVERED

    def ownership(self) -> OwnershipContext:
        return OwnershipContext(
            entity_type=ORDER,
            entity_id=self.id,
            branch_id=self.branch_id,
            supplier_id=self.supplier_id,
        )


@dataclass(frozen=True)
class Shipment:
    """Read projection of a shipment, with its order's parties denormalized."""

    id: UUID
    shipment_number: str
    order_id: UUID
    supplier_id: UUID
    branch_id: UUID
    status: ShipmentStatus
    carrier: str | None = None
    tracking_number: str | None = None
    shipped_date: datetime | None = None
    estimated_delivery: date | None = None
    actual_delivery: datetime | None = None
    notes: str | None = None

    def ownership(self) -> OwnershipContext:
        return OwnershipContext(
            entity_type=SHIPMENT,
            entity_id=self.id,
            branch_id=self.branch_id,
            supplier_id=self.supplier_id,
        )


@dataclass(frozen=True)
class TransitionEvent:
    """Emitted after every committed transition.

    ``from_state`` is None when the entity was created.
    """

    entity_type: str
    entity_id: UUID
    from_state: str | None
    to_state: str
    actor: Actor
    occurred_at: datetime
    entity_number: str | None = None
    payload: dict = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class ConfirmationResult:
    """Outcome of a supplier response.

    ``order`` is set for confirmations; ``replayed`` is True when a retried
    confirm found the order created by an earlier call.
    """

    request: SupplyRequest
    order: Order | None = None
    replayed: bool = False


@dataclass(frozen=True)
class LowStockAlert:
    inventory_id: UUID
    branch_id: UUID | None
    item_id: UUID
    item_name: str
    current_stock: int
    min_stock_level: int
    severity: str


@dataclass(frozen=True)
class BudgetSummary:
    budget_count: int
    active_budgets: int
    total_budget: Decimal
    used_budget: Decimal

    @property
    def remaining_budget(self) -> Decimal:
        return self.total_budget - self.used_budget

    @property
    def utilization_pct(self) -> Decimal:
        if self.total_budget == 0:
            return Decimal("0")
        return (self.used_budget / self.total_budget * 100).quantize(Decimal("0.1"))


@dataclass(frozen=True)
class InventoryRecord:
    """Stock of one catalog item at one branch."""

    id: UUID
    branch_id: UUID
    item_id: UUID
    current_stock: int
    min_stock_level: int = 0
    max_stock_level: int = 0
    unit_cost: Decimal | None = None
    last_updated: datetime | None = None

    @property
    def is_low(self) -> bool:
        return self.current_stock < self.min_stock_level


@dataclass(frozen=True)
class AnnualBudget:
    id: UUID
    year: int
    total_budget: Decimal
    used_budget: Decimal
    status: str

    @property
    def remaining_budget(self) -> Decimal:
        return self.total_budget - self.used_budget


@dataclass(frozen=True)
class BudgetCategory:
    id: UUID
    budget_id: UUID
    category_name: str
    allocated_amount: Decimal
    used_amount: Decimal = Decimal("0")


@dataclass(frozen=True)
class BudgetExpense:
    """One charge against an annual budget.

    ``reference_number`` is the order number for delivery charges.
    """

    id: UUID
    budget_id: UUID
    amount: Decimal
    description: str
    expense_type: str
    expense_date: date
    category_id: UUID | None = None
    reference_number: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """One persisted transition, as read back from the audit trail."""

    sequence: int
    entity_type: str
    entity_id: UUID
    from_state: str | None
    to_state: str
    actor_id: UUID
    actor_role: str
    occurred_at: datetime
    entity_number: str | None = None
    payload: dict = field(default_factory=dict, compare=False, hash=False)
